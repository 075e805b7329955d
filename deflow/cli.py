"""
Command-line interface for DEFlow
"""

import sys
from pathlib import Path
from typing import Optional

import click
import pandas as pd

from . import __version__, check_dependencies, get_info
from .config import Config, get_default_config, save_config
from .core import DEAnalysis
from .differential import read_result_table
from .enrichment import (MissingValuePolicy, RankingMetric, read_term2gene,
                         term2gene_from_gmt)
from .exceptions import DEFlowError
from .genomics import load_gene_mapping
from .utils import setup_logging, validate_external_tools
from .visualization import make_pdf_deterministic, save_figure

CLI_ERRORS = (DEFlowError, OSError, ValueError, KeyError)


# Global context for CLI
class CLIContext:
    def __init__(self):
        self.config_file: Optional[Path] = None
        self.config: Optional[Config] = None
        self.verbose: bool = False
        self.quiet: bool = False

    def analysis(
        self, mapping_file: Optional[str] = None, term2gene_file: Optional[str] = None
    ) -> DEAnalysis:
        """DEAnalysis from the loaded configuration, with command line overrides"""
        config = self.config or get_default_config()
        analysis = DEAnalysis.from_config(config)
        if mapping_file:
            analysis.gene_mapping = load_gene_mapping(mapping_file)
        if term2gene_file:
            analysis.term2gene = read_term2gene(term2gene_file)
        return analysis


def _fail(message: str) -> None:
    click.echo(message, err=True)
    sys.exit(1)


def _read_annotated(result_file: str) -> pd.DataFrame:
    sep = "\t" if Path(result_file).suffix.lower() in (".tsv", ".txt") else ","
    return pd.read_csv(result_file, sep=sep)


def _annotation(annotation: Optional[str], gene_sets: Optional[str]):
    if gene_sets:
        if Path(gene_sets).suffix.lower() == ".gmt":
            return term2gene_from_gmt(gene_sets)
        return read_term2gene(gene_sets)
    if not annotation:
        _fail("Error: give a gene set subcategory (--annotation) or a gene set file (--gene-sets)")
    return annotation


@click.group()
@click.version_option(__version__)
@click.option(
    "--config", "-c", type=click.Path(exists=True), help="Configuration file path"
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option("--quiet", "-q", is_flag=True, help="Enable quiet mode (minimal output)")
@click.pass_context
def main(ctx, config, verbose, quiet):
    """
    DEFlow: analysis and plotting helpers for RNA-seq differential expression

    Annotate DESeq2/edgeR results, draw volcano plots, run GSEA and ORA and
    export reproducible PDF figures.
    """
    cli_ctx = CLIContext()
    cli_ctx.verbose = verbose
    cli_ctx.quiet = quiet

    log_level = "DEBUG" if verbose else "WARNING" if quiet else "INFO"
    setup_logging(level=log_level)

    if config:
        cli_ctx.config_file = Path(config)
        from .config import load_config

        try:
            cli_ctx.config = load_config(cli_ctx.config_file)
        except CLI_ERRORS as e:
            _fail(f"Cannot load configuration: {e}")

    ctx.obj = cli_ctx


@main.command()
def info():
    """Show DEFlow package information"""

    info_data = get_info()

    click.echo("=" * 50)
    click.echo(f"DEFlow v{info_data['version']}")
    click.echo("=" * 50)
    click.echo(f"Description: {info_data['description']}")
    click.echo(f"Python version: {info_data['python_version']}")
    click.echo()

    click.echo("Available modules:")
    for module in info_data["modules"]:
        click.echo(f"  - {module}")
    click.echo()

    deps = check_dependencies()
    click.echo("Dependency status:")
    for dep, available in deps.items():
        status = "✓" if available else "✗"
        click.echo(f"  {status} {dep}")


@main.command()
@click.argument("output_file", type=click.Path())
@click.option(
    "--format",
    type=click.Choice(["yaml", "json"]),
    default="yaml",
    help="Output format for configuration file",
)
def init_config(output_file, format):
    """Initialize a new DEFlow configuration file"""

    output_path = Path(output_file)

    if output_path.exists():
        if not click.confirm(f"File {output_path} already exists. Overwrite?"):
            click.echo("Configuration initialization cancelled.")
            return

    if output_path.suffix.lower() not in (".yaml", ".yml", ".json"):
        output_path = output_path.with_suffix(".json" if format == "json" else ".yaml")

    try:
        save_config(get_default_config(), output_path)
    except OSError as e:
        _fail(f"Error creating configuration file: {e}")

    click.echo(f"Configuration file created: {output_path}")
    click.echo("Edit this file to customize your analysis parameters.")


@main.command()
@click.argument("config_file", type=click.Path(exists=True))
def validate_config(config_file):
    """Validate a DEFlow configuration file"""

    from .config import load_config
    from .config import validate_config as validate_config_func

    try:
        config = load_config(config_file)
    except CLI_ERRORS as e:
        _fail(f"Configuration validation failed: {e}")

    click.echo(f"Configuration loaded successfully: {config_file}")

    issues = validate_config_func(config)
    if not issues:
        click.echo("✓ Configuration is valid")
    else:
        click.echo("Configuration issues found:")
        for issue in issues:
            click.echo(f"  ✗ {issue}")
        sys.exit(1)


@main.command()
def check_env():
    """Check DEFlow environment and dependencies"""

    click.echo("Checking DEFlow environment...")
    click.echo()

    all_good = True

    click.echo("Python dependencies:")
    for dep, available in check_dependencies().items():
        status = "✓" if available else "✗"
        click.echo(f"  {status} {dep}")
        all_good &= available

    click.echo()

    click.echo("External tools:")
    for tool, available in validate_external_tools().items():
        status = "✓" if available else "✗"
        click.echo(f"  {status} {tool}")
        all_good &= available

    click.echo()

    if all_good:
        click.echo("✓ Environment check passed!")
    else:
        click.echo("✗ Environment check failed. Please install missing dependencies.")
        click.echo()
        click.echo("Installation suggestions:")
        click.echo("  - Python packages: pip install deflow")
        click.echo("  - exiftool: conda install -c conda-forge exiftool")
        click.echo("  - qpdf: conda install -c conda-forge qpdf")
        sys.exit(1)


@main.command()
@click.argument("pdf_files", nargs=-1, required=True, type=click.Path(exists=True))
def normalize_pdf(pdf_files):
    """Strip metadata from PDF files and rewrite them deterministically"""

    for pdf_file in pdf_files:
        try:
            make_pdf_deterministic(pdf_file)
        except CLI_ERRORS as e:
            _fail(f"Normalizing {pdf_file} failed: {e}")
        click.echo(f"✓ {pdf_file}")


@main.command()
@click.argument("result_file", type=click.Path(exists=True))
@click.option(
    "--package",
    "-p",
    type=click.Choice(["DESeq2", "edgeR"]),
    required=True,
    help="Package that produced the result table",
)
@click.option("--mapping", "-m", type=click.Path(exists=True), help="Gene identifier mapping file")
@click.option("--output", "-o", type=click.Path(), required=True, help="Annotated CSV file")
@click.pass_context
def annotate(ctx, result_file, package, mapping, output):
    """Annotate an exported DESeq2 or edgeR result table"""

    try:
        analysis = ctx.obj.analysis(mapping_file=mapping)
        result = analysis.annotate(read_result_table(result_file), package)
    except CLI_ERRORS as e:
        _fail(f"Annotation failed: {e}")

    Path(output).parent.mkdir(parents=True, exist_ok=True)
    result.to_csv(output, index=False)
    click.echo(f"Annotated {len(result)} genes: {output}")


@main.command()
@click.argument("result_file", type=click.Path(exists=True))
@click.option(
    "--metric",
    type=click.Choice([m.value for m in RankingMetric]),
    default=None,
    help="Ranking metric (default from configuration)",
)
@click.option(
    "--missing",
    type=click.Choice([m.value for m in MissingValuePolicy]),
    default=None,
    help="Missing value policy (default from configuration)",
)
@click.option("--output", "-o", type=click.Path(), required=True, help="Ranked list (.rnk)")
@click.pass_context
def rank(ctx, result_file, metric, missing, output):
    """Write a ranked gene list from an annotated result table"""

    overrides = {}
    if metric:
        overrides["ranking_metric"] = metric
    if missing:
        overrides["missing"] = missing

    try:
        analysis = ctx.obj.analysis()
        ranking = analysis.rank(_read_annotated(result_file), **overrides)
    except CLI_ERRORS as e:
        _fail(f"Ranking failed: {e}")

    Path(output).parent.mkdir(parents=True, exist_ok=True)
    ranking.to_csv(output, sep="\t", header=False)
    click.echo(f"Ranked {len(ranking)} genes: {output}")


@main.command()
@click.argument("result_file", type=click.Path(exists=True))
@click.option("--title", "-t", default=None, help="Plot title")
@click.option("--output", "-o", type=click.Path(), required=True, help="Figure file")
@click.pass_context
def volcano(ctx, result_file, title, output):
    """Draw a volcano plot of an annotated result table"""

    try:
        analysis = ctx.obj.analysis()
        fig = analysis.volcano(_read_annotated(result_file), title=title)
        save_figure(
            fig,
            output,
            deterministic=analysis.config.export["deterministic_pdf"],
            dpi=analysis.config.export["dpi"],
        )
    except CLI_ERRORS as e:
        _fail(f"Volcano plot failed: {e}")

    click.echo(f"Volcano plot saved: {output}")


@main.command()
@click.argument("result_file", type=click.Path(exists=True))
@click.option("--annotation", "-a", help="Gene set subcategory, e.g. CP:REACTOME")
@click.option("--term2gene", type=click.Path(exists=True), help="Gene set table")
@click.option(
    "--gene-sets", type=click.Path(exists=True), help="Custom gene set table or GMT file"
)
@click.option("--title", "-t", default="", help="Plot title")
@click.option("--plot", type=click.Path(), help="Also save a bar plot to this file")
@click.option("--output", "-o", type=click.Path(), required=True, help="GSEA table (CSV)")
@click.pass_context
def gsea(ctx, result_file, annotation, term2gene, gene_sets, title, plot, output):
    """Run pre-ranked GSEA on an annotated result table"""

    try:
        analysis = ctx.obj.analysis(term2gene_file=term2gene)
        table = analysis.gsea(
            _read_annotated(result_file), _annotation(annotation, gene_sets)
        )
        Path(output).parent.mkdir(parents=True, exist_ok=True)
        table.to_csv(output, index=False)
        if plot:
            save_figure(analysis.plot_gsea(table, title=title), plot)
    except CLI_ERRORS as e:
        _fail(f"GSEA failed: {e}")

    click.echo(f"GSEA tested {len(table)} gene sets: {output}")


@main.command()
@click.argument("result_file", type=click.Path(exists=True))
@click.option("--annotation", "-a", help="Gene set subcategory, e.g. CP:REACTOME")
@click.option("--term2gene", type=click.Path(exists=True), help="Gene set table")
@click.option(
    "--gene-sets", type=click.Path(exists=True), help="Custom gene set table or GMT file"
)
@click.option("--title", "-t", default="", help="Plot title")
@click.option("--plot", type=click.Path(), help="Also save a bar plot to this file")
@click.option("--output", "-o", type=click.Path(), required=True, help="ORA table (CSV)")
@click.pass_context
def ora(ctx, result_file, annotation, term2gene, gene_sets, title, plot, output):
    """Run over-representation analysis of up- and downregulated genes"""

    try:
        analysis = ctx.obj.analysis(term2gene_file=term2gene)
        table = analysis.ora(
            _read_annotated(result_file), _annotation(annotation, gene_sets)
        )
        Path(output).parent.mkdir(parents=True, exist_ok=True)
        table.to_csv(output, index=False)
        if plot:
            ora_plot = analysis.plot_ora(table, title=title)
            save_figure(ora_plot.figure, plot)
            click.echo(f"ORA plot export height: {ora_plot.height:.1f} cm")
    except CLI_ERRORS as e:
        _fail(f"ORA failed: {e}")

    click.echo(f"ORA found {len(table)} gene set results: {output}")


if __name__ == "__main__":
    main()
