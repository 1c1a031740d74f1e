"""
Rendering of the visible watermark attesting a signature.

The watermark is a text stamp in the top-left corner of the first page of a
signed document. It is a cosmetic rendering of the
:class:`~sigillum.sign.record.SignatureRecord`, and is not covered by the
signature itself.
"""

import logging
from dataclasses import dataclass
from typing import Tuple

from pyhanko.config.api import ConfigurableMixin
from pyhanko.config.errors import ConfigurationError
from pyhanko.pdf_utils import generic
from pyhanko.pdf_utils.misc import PdfReadError
from pyhanko.pdf_utils.text import TextBoxStyle
from pyhanko.pdf_utils.writer import BasePdfFileWriter
from pyhanko.stamp import TextStamp, TextStampStyle

from .sign.record import SignatureRecord

__all__ = [
    'WatermarkStyle',
    'WatermarkRenderer',
    'DEFAULT_WATERMARK_TEXT',
    'DEFAULT_MARGIN',
]

logger = logging.getLogger(__name__)

DEFAULT_WATERMARK_TEXT = (
    "Digitally signed by %(signer)s\n%(ts)s%(extra_line)s\nHash: %(digest)s"
)
DEFAULT_MARGIN = 10


@dataclass(frozen=True)
class WatermarkStyle(TextStampStyle):
    """
    Text stamp style for signature watermarks.

    The stamp text can refer to the parameters ``signer``, ``ts``, ``extra``,
    ``extra_line`` (the extra text on a line of its own, if there is any)
    and ``digest`` (the hex-encoded content digest).
    """

    stamp_text: str = DEFAULT_WATERMARK_TEXT

    border_width: int = 0

    text_box_style: TextBoxStyle = TextBoxStyle(font_size=8)

    timestamp_format: str = '%Y-%m-%d %H:%M:%S %Z'


@dataclass(frozen=True)
class WatermarkRenderer(ConfigurableMixin):
    """
    Renders the watermark of a signature record onto a page.

    The stamp's top-left corner is positioned ``margin`` units away from the
    top-left corner of the page's media box.
    """

    style: WatermarkStyle = WatermarkStyle()
    """
    Stamp style to use.
    """

    margin: int = DEFAULT_MARGIN
    """
    Distance from the top and left edges of the page, in user units.
    """

    page_ix: int = 0
    """
    Page to put the watermark on; defaults to the first page.
    """

    @classmethod
    def process_entries(cls, config_dict):
        super().process_entries(config_dict)
        margin = config_dict.get('margin', DEFAULT_MARGIN)
        if not isinstance(margin, (int, float)) or margin < 0:
            raise ConfigurationError(
                "Watermark margin must be a nonnegative number"
            )

    def text_params(self, record: SignatureRecord) -> dict:
        ts = record.timestamp.strftime(self.style.timestamp_format)
        return {
            'signer': record.signer_name,
            'ts': ts,
            'extra': record.extra,
            'extra_line': f'\n{record.extra}' if record.extra else '',
            'digest': record.content_digest.hex(),
        }

    def render(
        self,
        writer: BasePdfFileWriter,
        record: SignatureRecord,
        page_ix=None,
    ) -> Tuple[float, float]:
        """
        Stamp the watermark for a signature record onto a page.

        :param writer:
            The writer to add the watermark to.
        :param record:
            The signature record to render.
        :param page_ix:
            Page index; overrides :attr:`page_ix`.
        :return:
            The coordinates of the lower left corner of the stamp.
        """
        if page_ix is None:
            page_ix = self.page_ix
        stamp = TextStamp(
            writer,
            style=self.style,
            text_params=self.text_params(record),
        )
        # render the stamp first, so we know how tall it is
        stamp.register()
        llx, _, _, ury = _media_box(writer, page_ix)
        x = llx + self.margin
        y = ury - self.margin - stamp.box.height
        stamp.apply(page_ix, x, y)
        logger.debug(
            f"Watermark of size {stamp.box.width:g}x{stamp.box.height:g} "
            f"placed at ({x:g}, {y:g}) on page {page_ix}"
        )
        return x, y


def _media_box(writer: BasePdfFileWriter, page_ix: int):
    page_ref, _ = writer.find_page_for_modification(page_ix)
    # find the page's /MediaBox by going up the tree until we encounter it
    pagetree_obj = page_ref.get_object()
    while True:
        try:
            mb = pagetree_obj['/MediaBox']
            break
        except KeyError:
            try:
                pagetree_obj = pagetree_obj['/Parent']
            except KeyError:
                raise PdfReadError(f'Page {page_ix} does not have a /MediaBox')
    if not isinstance(mb, generic.ArrayObject) or len(mb) != 4:
        raise PdfReadError(f'Page {page_ix} has a malformed /MediaBox')
    x1, y1, x2, y2 = (float(v) for v in mb)
    return min(x1, x2), min(y1, y2), max(x1, x2), max(y1, y2)
