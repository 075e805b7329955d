"""
Core configuration management for DEFlow
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """Main configuration class for DEFlow analysis"""

    # General settings
    project_name: str = "DEFlow_Analysis"
    random_seed: int = 42
    n_threads: int = 1

    # Input/Output paths
    output_dir: Optional[str] = None
    gene_mapping_file: Optional[str] = None
    term2gene_file: Optional[str] = None

    # Analysis parameters
    volcano: Dict[str, Any] = field(default_factory=dict)
    gsea: Dict[str, Any] = field(default_factory=dict)
    ora: Dict[str, Any] = field(default_factory=dict)
    heatmap: Dict[str, Any] = field(default_factory=dict)
    export: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Fill missing sections and keys with defaults"""
        self.volcano = {**self._get_default_volcano(), **self.volcano}
        self.gsea = {**self._get_default_gsea(), **self.gsea}
        self.ora = {**self._get_default_ora(), **self.ora}
        self.heatmap = {**self._get_default_heatmap(), **self.heatmap}
        self.export = {**self._get_default_export(), **self.export}

    def _get_default_volcano(self) -> Dict[str, Any]:
        """Default volcano plot configuration"""
        return {
            "log2fc_threshold": 1.0,
            "padj_threshold": 0.05,
            "label_fraction": 0.005,
            "protein_coding_label_only": False,
        }

    def _get_default_gsea(self) -> Dict[str, Any]:
        """Default GSEA configuration"""
        return {
            "ranking_metric": "log2FoldChange",
            "missing": "impute",
            "min_size": 5,
            "max_size": 2000,
            "permutations": 10000,
            "eps": 0.0,
            "cutoff": 0.05,
        }

    def _get_default_ora(self) -> Dict[str, Any]:
        """Default over-representation analysis configuration"""
        return {
            "log2fc_threshold": 1.0,
            "padj_threshold": 0.05,
            "min_size": 5,
            "max_size": 500,
            "cutoff": 0.05,
            "truncate_label_at": 45,
        }

    def _get_default_heatmap(self) -> Dict[str, Any]:
        """Default heatmap configuration"""
        return {
            "plotting_value": "zscore",
            "hide_not_expressed": True,
            "sample_column": "sample_name",
        }

    def _get_default_export(self) -> Dict[str, Any]:
        """Default figure export configuration"""
        return {
            "deterministic_pdf": True,
            "dpi": 300,
            "save_formats": ["pdf"],
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a plain dictionary"""
        return asdict(self)


def load_config(config_file: Union[str, Path]) -> Config:
    """Load configuration from YAML or JSON file"""
    config_path = Path(config_file)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.info(f"Loading configuration from {config_path}")

    with open(config_path, "r") as f:
        if config_path.suffix.lower() in [".yaml", ".yml"]:
            config_dict = yaml.safe_load(f) or {}
        elif config_path.suffix.lower() == ".json":
            config_dict = json.load(f)
        else:
            raise ConfigurationError(
                f"Unsupported config file format: {config_path.suffix}"
            )

    try:
        return Config(**config_dict)
    except TypeError as e:
        raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e


def save_config(config: Config, output_file: Union[str, Path]) -> None:
    """Save configuration to a YAML or JSON file"""
    output_path = Path(output_file)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = config.to_dict()

    with open(output_path, "w") as f:
        if output_path.suffix.lower() == ".json":
            json.dump(config_dict, f, indent=2)
        else:
            yaml.dump(config_dict, f, default_flow_style=False, indent=2)

    logger.info(f"Configuration saved to {output_path}")


def validate_config(config: Config) -> List[str]:
    """Validate configuration and return list of issues"""
    issues = []

    for attr in ("gene_mapping_file", "term2gene_file"):
        path = getattr(config, attr)
        if path and not Path(path).exists():
            issues.append(f"{attr} does not exist: {path}")

    if config.output_dir:
        try:
            Path(config.output_dir).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            issues.append(f"Cannot create output directory {config.output_dir}: {e}")

    if config.n_threads <= 0:
        issues.append("Number of threads must be positive")

    for section in ("volcano", "ora"):
        params = getattr(config, section)
        if params["log2fc_threshold"] < 0:
            issues.append(f"{section}.log2fc_threshold must be non-negative")
        if not 0 < params["padj_threshold"] <= 1:
            issues.append(f"{section}.padj_threshold must be in (0, 1]")

    if not 0 <= config.volcano["label_fraction"] <= 1:
        issues.append("volcano.label_fraction must be in [0, 1]")

    for section in ("gsea", "ora"):
        params = getattr(config, section)
        if params["min_size"] > params["max_size"]:
            issues.append(f"{section}.min_size must not exceed {section}.max_size")

    if config.gsea["permutations"] <= 0:
        issues.append("gsea.permutations must be positive")

    return issues


def get_default_config() -> Config:
    """Get default configuration object"""
    return Config()
