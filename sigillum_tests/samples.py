from io import BytesIO

from pyhanko.pdf_utils import generic, writer
from pyhanko.pdf_utils.font.basic import get_courier
from pyhanko.pdf_utils.generic import pdf_name
from pyhanko.pdf_utils.incremental_writer import IncrementalPdfFileWriter

__all__ = [
    'simple_page',
    'minimal_pdf',
    'MINIMAL',
    'MINIMAL_XREF_STREAM',
    'MINIMAL_TWO_PAGES',
    'MINIMAL_ENCRYPTED',
    'SAMPLE_TEXT',
    'append_revision',
    'embed_record',
    'unsigned_with_record',
]

SAMPLE_TEXT = 'Hello World!'


def simple_page(pdf_out, ascii_text, media_box=(0, 0, 300, 144)):
    # based on the minimal pdf file of
    # https://brendanzagaeski.appspot.com/0004.html
    resources = generic.DictionaryObject(
        {
            pdf_name('/Font'): generic.DictionaryObject(
                {pdf_name('/F1'): get_courier(pdf_out)}
            )
        }
    )
    media_box = generic.ArrayObject(map(generic.NumberObject, media_box))
    stream = generic.StreamObject(
        stream_data=f'BT /F1 18 Tf 0 0 Td ({ascii_text}) Tj ET'.encode('ascii')
    )
    return writer.PageObject(
        contents=pdf_out.add_object(stream),
        media_box=media_box,
        resources=resources,
    )


def minimal_pdf(
    ascii_text=SAMPLE_TEXT, pages=1, stream_xrefs=False, encrypt=False
) -> bytes:
    w = writer.PdfFileWriter(stream_xrefs=stream_xrefs)
    for ix in range(pages):
        w.insert_page(simple_page(w, f'{ascii_text} {ix + 1}'))
    if encrypt:
        w.encrypt('ownersecret', 'usersecret')
    out = BytesIO()
    w.write(out)
    return out.getvalue()


def append_revision(pdf_bytes: bytes) -> bytes:
    """
    Append an incremental update that changes the document catalog.
    """
    w = IncrementalPdfFileWriter(BytesIO(pdf_bytes))
    w.root[pdf_name('/Lang')] = generic.pdf_string('en')
    w.update_root()
    out = BytesIO()
    w.write(out)
    return out.getvalue()


def embed_record(pdf_bytes: bytes, record_obj, indirect=True) -> bytes:
    """
    Append an incremental update that puts an arbitrary object in
    the signature record slot of the trailer.
    """
    w = IncrementalPdfFileWriter(BytesIO(pdf_bytes))
    if indirect:
        record_obj = w.add_object(record_obj)
    else:
        # make sure the update isn't empty
        w.update_root()
    w.set_custom_trailer_entry(pdf_name('/SigillumRecord'), record_obj)
    out = BytesIO()
    w.write(out)
    return out.getvalue()


def unsigned_with_record(record_obj) -> bytes:
    """
    Produce a single-revision document that carries a signature record.
    """
    w = writer.PdfFileWriter()
    w.insert_page(simple_page(w, SAMPLE_TEXT))
    w.set_custom_trailer_entry(
        pdf_name('/SigillumRecord'), w.add_object(record_obj)
    )
    out = BytesIO()
    w.write(out)
    return out.getvalue()


MINIMAL = minimal_pdf()
MINIMAL_XREF_STREAM = minimal_pdf(stream_xrefs=True)
MINIMAL_TWO_PAGES = minimal_pdf(pages=2)
MINIMAL_ENCRYPTED = minimal_pdf(encrypt=True)
