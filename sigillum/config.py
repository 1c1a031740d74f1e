"""
Configuration of the signing engine.

Configuration is read from a YAML file. A full example:

.. code-block:: yaml

    key-dir: /home/alice/.sigillum
    key-size: 3072
    digest-algorithm: sha384
    prefer-pss: true
    watermark:
      margin: 12
      style:
        stamp-text: "Signed by %(signer)s\\n%(ts)s"
        border-width: 1
    logging:
      root-level: INFO
      root-output: stderr
      by-module:
        sigillum.sign:
          level: DEBUG

All keys are optional.
"""

from dataclasses import dataclass
from typing import Dict, Optional

import yaml
from pyhanko.config.api import ConfigurableMixin
from pyhanko.config.errors import ConfigurationError
from pyhanko.config.logging import LogConfig, parse_logging_config

from .keys.pemder import MIN_KEY_SIZE
from .keys.storage import FileKeyStorage
from .keys.store import DEFAULT_KEY_SIZE, MAX_KEY_SIZE
from .sign.algorithms import DEFAULT_DIGEST_ALGORITHM, DIGEST_ALGORITHMS
from .stamp import WatermarkRenderer

__all__ = [
    'SigillumConfig',
    'SigillumRootConfig',
    'parse_config',
    'DEFAULT_CONFIG_FILE',
]

DEFAULT_CONFIG_FILE = 'sigillum.yml'


@dataclass(frozen=True)
class SigillumConfig(ConfigurableMixin):
    """
    Settings for the signing engine.
    """

    key_dir: Optional[str] = None
    """
    Directory in which the keypair is stored. If not specified, the platform's
    per-user application data directory is used.
    See :func:`~sigillum.keys.storage.default_key_dir`.
    """

    key_size: int = DEFAULT_KEY_SIZE
    """
    RSA modulus size for newly generated keys.
    """

    digest_algorithm: str = DEFAULT_DIGEST_ALGORITHM
    """
    Digest algorithm for new signatures.
    """

    prefer_pss: bool = True
    """
    Produce RSASSA-PSS signatures rather than PKCS#1 v1.5 ones.
    """

    watermark: WatermarkRenderer = WatermarkRenderer()
    """
    Watermark settings.
    """

    @classmethod
    def process_entries(cls, config_dict):
        super().process_entries(config_dict)
        key_size = config_dict.get('key_size', DEFAULT_KEY_SIZE)
        if not isinstance(key_size, int) or not (
            MIN_KEY_SIZE <= key_size <= MAX_KEY_SIZE
        ):
            raise ConfigurationError(
                f"key-size must be an integer between {MIN_KEY_SIZE} and "
                f"{MAX_KEY_SIZE}."
            )
        digest_algorithm = config_dict.get(
            'digest_algorithm', DEFAULT_DIGEST_ALGORITHM
        )
        if not isinstance(digest_algorithm, str):
            raise ConfigurationError("digest-algorithm must be a string")
        digest_algorithm = digest_algorithm.lower()
        if digest_algorithm not in DIGEST_ALGORITHMS:
            raise ConfigurationError(
                f"digest-algorithm must be one of "
                f"{', '.join(sorted(DIGEST_ALGORITHMS))}, "
                f"not '{digest_algorithm}'."
            )
        config_dict['digest_algorithm'] = digest_algorithm
        if 'prefer_pss' in config_dict:
            config_dict['prefer_pss'] = bool(config_dict['prefer_pss'])

    def key_storage(self) -> FileKeyStorage:
        return FileKeyStorage(self.key_dir)


@dataclass(frozen=True)
class SigillumRootConfig:
    """
    The full contents of a configuration file.
    """

    config: SigillumConfig
    """
    Engine settings.
    """

    log_config: Dict[Optional[str], LogConfig]
    """
    Per-module logging configuration. The ``None`` key houses the
    configuration for the root logger.
    """


def parse_config(yaml_str) -> SigillumRootConfig:
    """
    Parse a YAML configuration file.

    :param yaml_str:
        The configuration, as a string or a text stream.
    :return:
        A :class:`.SigillumRootConfig`.
    :raises ConfigurationError:
        if the configuration is invalid.
    """
    try:
        config_dict = yaml.safe_load(yaml_str) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Could not parse configuration: {e}") from e
    if not isinstance(config_dict, dict):
        raise ConfigurationError("Configuration must be a dictionary")
    config_dict = dict(config_dict)
    log_config = parse_logging_config(config_dict.pop('logging', {}))
    return SigillumRootConfig(
        config=SigillumConfig.from_config(config_dict),
        log_config=log_config,
    )
