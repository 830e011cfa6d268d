import os
from dataclasses import dataclass, field
from pathlib import Path

ROOT_ENV = "RECORD_STORE_ROOT"
SIMILARITY_ENV = "RECORD_STORE_SIMILARITY"


@dataclass
class StoreConfig:
    root: Path = field(default_factory=Path.cwd) # directory holding the artifact pairs
    content_suffix: str = ""
    tree_suffix: str = "_tree"
    similarity_threshold: float = 85.0 # percent

    def content_path(self, name: str) -> Path:
        return Path(self.root) / f"{name}{self.content_suffix}"

    def tree_path(self, name: str) -> Path:
        return Path(self.root) / f"{name}{self.tree_suffix}"

    @classmethod
    def from_env(cls) -> "StoreConfig":
        config = cls()
        if os.environ.get(ROOT_ENV):
            config.root = Path(os.environ[ROOT_ENV])
        if os.environ.get(SIMILARITY_ENV):
            config.similarity_threshold = float(os.environ[SIMILARITY_ENV])
        return config
