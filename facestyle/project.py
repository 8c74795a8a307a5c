# facestyle/project.py
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .config import MainConfig
from .src.api import FaceBlit, StylizationResult
from .src.io_utils import read_image, read_landmarks_file, write_image
from .src.store import DirectoryStyleStore


class Project:
    def __init__(self, config_path: str, overrides: Optional[Dict[str, Any]] = None):
        """
        Args:
            config_path: Project YAML file.
            overrides: Values that replace keys of its `project` section,
                e.g. from command-line flags.
        """
        self.config_path = Path(config_path)
        self.overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found at {config_path}")

        self.config = self._load_config()
        self.output_dir = Path(self.config.project.output_dir)

        # 1. Style assets live in a directory store
        self.store = DirectoryStyleStore(self.config.project.store_dir)

        # 2. Initialize the stylization engine
        self.engine = FaceBlit(self.config.engine, self.store)

    def _load_config(self) -> MainConfig:
        with open(self.config_path, "r") as f:
            config_data = yaml.safe_load(f)
        if self.overrides:
            config_data.setdefault("project", {}).update(self.overrides)
        return MainConfig(**config_data)

    def _prepare_style(self) -> None:
        cfg = self.config.project
        if cfg.style_name in self.store and not cfg.force_precomputation:
            print(f"Using precomputed style '{cfg.style_name}' from {self.store.root}")
            self.engine.load_style(cfg.style_name)
            return

        if cfg.style_path is None or cfg.style_landmarks_path is None:
            raise FileNotFoundError(
                f"Style '{cfg.style_name}' is not in {self.store.root}; "
                "set style_path and style_landmarks_path to author it."
            )
        print(f"Authoring style '{cfg.style_name}' from {cfg.style_path}")
        self.engine.add_style(
            cfg.style_name,
            read_image(cfg.style_path),
            read_landmarks_file(cfg.style_landmarks_path),
        )

    def run(self) -> StylizationResult:
        """
        Prepares the style, stylizes the target and saves the outputs.
        This is the main entry point for the command-line run.py script.

        Returns:
            StylizationResult: The stylized image with its guides.
        """
        print("\n--- Starting Stylization Pipeline ---")
        self._prepare_style()

        cfg = self.config.project
        target = read_image(cfg.target_path)
        landmarks = read_landmarks_file(cfg.target_landmarks_path)
        result = self.engine.stylize(target, landmarks)

        stem = Path(cfg.target_path).stem
        write_image(self.output_dir / f"{stem}_stylized.png", result.image)
        write_image(self.output_dir / f"{stem}_target_pos.png", result.target_pos_guide)

        print("\n--- Project Execution Complete ---")
        print(f"Output saved to: {self.output_dir}")

        return result
