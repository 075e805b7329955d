"""
Reproducible figure export

PDF files written by plotting libraries carry creation dates, producer
strings and random document identifiers. ``make_pdf_deterministic`` strips
the metadata with exiftool and rewrites the file with qpdf so that the
document identifier is derived from the content only.
"""

import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Union

import matplotlib.pyplot as plt

from ..exceptions import ExternalToolError
from ..utils import get_logger, validate_external_tools

logger = get_logger(__name__)

EXIFTOOL_ARGS = [
    "-q",
    "-q",  # suppress informational messages and minor warnings
    "-all:all=",
    "-overwrite_original",
]

QPDF_ARGS = [
    "--linearize",  # canonical object ordering
    "--deterministic-id",  # identifier from content, not time or file name
]

# metadata matplotlib would otherwise stamp into the file
VOLATILE_METADATA = {
    ".pdf": {"CreationDate": None, "Producer": None, "Creator": None},
    ".svg": {"Date": None, "Creator": None},
    ".png": {"Software": None},
}


def _run_tool(command: List[str]) -> subprocess.CompletedProcess:
    tool = command[0]
    logger.debug(f"Running {' '.join(command)}")
    try:
        result = subprocess.run(command, capture_output=True, text=True)
    except FileNotFoundError as e:
        raise ExternalToolError(tool) from e

    if result.returncode != 0:
        raise ExternalToolError(tool, result.returncode, result.stderr)
    return result


def make_pdf_deterministic(pdf_file: Union[str, Path]) -> Path:
    """
    Strip metadata from a PDF and rewrite it deterministically, in place

    Args:
        pdf_file: PDF to normalize

    Returns:
        Path of the normalized file

    Raises:
        ExternalToolError: exiftool or qpdf is missing or failed. The file is
            left as the failing step produced it.
    """
    path = Path(pdf_file)
    if not path.exists():
        raise FileNotFoundError(f"PDF file not found: {path}")

    # qpdf cannot clear ModDate from the /Info dictionary, exiftool can
    _run_tool(["exiftool", *EXIFTOOL_ARGS, str(path)])
    _run_tool(["qpdf", *QPDF_ARGS, str(path), "--replace-input"])

    logger.info(f"Normalized PDF {path}")
    return path


def check_pdf_tools() -> Dict[str, bool]:
    """Report whether exiftool and qpdf are available"""
    return validate_external_tools(["exiftool", "qpdf"])


def save_figure(
    fig: plt.Figure,
    output_file: Union[str, Path],
    deterministic: bool = True,
    dpi: int = 300,
    tight: bool = False,
) -> Path:
    """
    Save a figure, normalizing PDFs for reproducible exports

    Fixed-size figures should be saved with tight=False so that the panel
    dimensions are preserved.

    Args:
        fig: Figure to save
        output_file: Destination; the suffix selects the format
        deterministic: Drop volatile metadata and normalize PDFs
        dpi: Resolution for raster formats
        tight: Crop the figure to its content

    Returns:
        Path to the saved file
    """
    path = Path(output_file)
    path.parent.mkdir(parents=True, exist_ok=True)

    metadata: Optional[Dict] = None
    if deterministic:
        metadata = VOLATILE_METADATA.get(path.suffix.lower())

    fig.savefig(
        path,
        dpi=dpi,
        bbox_inches="tight" if tight else None,
        metadata=metadata,
    )
    logger.info(f"Figure saved to {path}")

    if deterministic and path.suffix.lower() == ".pdf":
        make_pdf_deterministic(path)

    return path
