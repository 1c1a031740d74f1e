from dataclasses import dataclass
from typing import Optional

from sigillum.api import SigillumEngine
from sigillum.config import SigillumConfig


@dataclass
class CLIContext:
    """
    Context object that collects the settings gathered by the CLI root
    during a CLI invocation, either from configuration or from command line
    arguments.
    This object is passed around as a ``click`` context object.
    """

    config: Optional[SigillumConfig] = None
    """
    Values for engine configuration settings.
    """

    key_dir: Optional[str] = None
    """
    Key directory passed on the command line, overriding the configured one.
    """

    engine: Optional[SigillumEngine] = None
    """
    The engine, once it has been set up.
    """

    def get_engine(self) -> SigillumEngine:
        engine = self.engine
        if engine is None:
            config = self.config or SigillumConfig()
            storage = None
            if self.key_dir is not None:
                storage = SigillumConfig(key_dir=self.key_dir).key_storage()
            self.engine = engine = SigillumEngine.open(config, storage=storage)
        return engine
