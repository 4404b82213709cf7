# Copyright (c) 2025 Alliance for Sustainable Energy, LLC and Nimish Telang
# SPDX-License-Identifier: BSD-3-Clause

"""
Plots and command line report for the smoother comparison.

Usage:
    smoothing-report
    smoothing-report --output-dir plots --ceiling loess=8 --n-jobs 4
    smoothing-report --data-file my_series.csv --no-plots
"""

import logging
from pathlib import Path

import click
import matplotlib.pyplot as plt
import numpy as np

from .comparison import ComparisonReport
from .exceptions import NoViableConfigError
from .pipeline import BY_EYE_CHOICES, AnalysisConfig, AnalysisResult, run_analysis
from .series import Series, load_uk_driver_deaths
from .smoothing_estimator import FamilyTag

logger = logging.getLogger(__name__)


def _finish(fig, path):
    if path is not None:
        fig.savefig(path, dpi=150, bbox_inches='tight')
        logger.info("Saved plot to %s", path)
    return fig


def plot_series(series: Series, path=None):
    """Plot the raw series against calendar time."""
    fig, ax = plt.subplots(figsize=(12, 4))
    ax.plot(series.dates.to_timestamp(), series.values, color='black', linewidth=1)
    ax.set_xlabel('Date')
    ax.set_ylabel(series.name)
    ax.set_title(f'{series.name} ({series.dates[0]} to {series.dates[-1]})')
    ax.grid(True, alpha=0.3, linestyle='--')
    return _finish(fig, path)


def plot_family_fits(series: Series, scored, path=None, title=None):
    """Overlay every successful fit of one family on the observations."""
    fig, ax = plt.subplots(figsize=(12, 5))
    ax.plot(series.time_index, series.values, '.', color='gray', alpha=0.6, label='observed')
    for s in scored:
        if not s.ok:
            continue
        ax.plot(series.time_index, s.model.fitted_values, linewidth=1.5,
                label=f'{s.label}  mse={s.mse:.0f}')
    ax.set_xlabel('Time index (months)')
    ax.set_ylabel(series.name)
    if title is None and scored:
        title = str(scored[0].config.family).replace('_', ' ')
    ax.set_title(title)
    ax.legend(fontsize=8, loc='upper right')
    ax.grid(True, alpha=0.3, linestyle='--')
    return _finish(fig, path)


def plot_comparison(report: ComparisonReport, path=None):
    """Plot the selected curve of every family over the observations."""
    fig, ax = plt.subplots(figsize=(12, 5))
    predictions = report.predictions
    if 'observed' in predictions:
        ax.plot(predictions.index, predictions['observed'], '.', color='gray', alpha=0.6, label='observed')
    for row in report.summary.itertuples():
        ax.plot(predictions.index, predictions[row.family], linewidth=2,
                label=f'{row.label}  (df={row.effective_df:.1f})')
    ax.set_xlabel('Time index (months)')
    ax.set_title('Selected smoother per family')
    ax.legend(fontsize=9)
    ax.grid(True, alpha=0.3, linestyle='--')
    return _finish(fig, path)


def format_scores(scored) -> str:
    """Fixed-width table of one family's scores in input order."""
    lines = [f"{'Configuration':<45} {'MSE':>12} {'Eff. df':>8}", "-" * 67]
    for s in scored:
        if s.ok:
            lines.append(f"{s.label:<45} {s.mse:>12.2f} {s.complexity:>8.2f}")
        else:
            lines.append(f"{s.label:<45} {'failed':>12} {'':>8}  {s.error}")
    return "\n".join(lines)


def _parse_ceilings(ctx, param, values):
    ceilings = {}
    for value in values:
        family, sep, number = value.partition('=')
        if not sep:
            raise click.BadParameter(f"expected FAMILY=VALUE, got {value!r}")
        try:
            ceilings[FamilyTag(family.strip())] = float(number)
        except ValueError:
            raise click.BadParameter(
                f"expected FAMILY=VALUE with FAMILY in {[str(f) for f in FamilyTag]}, got {value!r}"
            )
    return ceilings


def print_result(result: AnalysisResult):
    for family, scored in result.scored.items():
        click.echo("\n" + "=" * 67)
        click.echo(str(family).replace('_', ' ').title())
        click.echo("=" * 67)
        click.echo(format_scores(scored))
        if family in result.selections:
            best = result.selections[family].best
            click.echo(f"Selected: {best.label}")
        else:
            click.echo(f"Selected: none ({result.dropped[family]})")

    click.echo("\n" + "=" * 67)
    click.echo("Comparison")
    click.echo("=" * 67)
    click.echo(result.report.summary.to_string(index=False, float_format=lambda v: f"{v:.2f}"))


@click.command()
@click.option(
    '--data-file',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help='CSV file with a monthly date column and one value column. Defaults to the bundled UK driver deaths series.',
)
@click.option(
    '--output-dir',
    type=click.Path(file_okay=False, path_type=Path),
    default=Path('plots'),
    show_default=True,
    help='Directory for the PNG plots.',
)
@click.option('--n-jobs', type=click.IntRange(min=1), default=1, show_default=True,
              help='Worker processes for grid evaluation.')
@click.option('--timeout', type=click.FloatRange(min=0, min_open=True), default=None,
              help='Seconds allowed per fit.')
@click.option('--ceiling', 'ceilings', multiple=True, callback=_parse_ceilings, metavar='FAMILY=VALUE',
              help='Complexity ceiling (effective df) for one family. Repeatable.')
@click.option('--default-ceiling', type=float, default=None,
              help='Ceiling for families without --ceiling. Defaults to 12.')
@click.option('--by-eye', is_flag=True, default=False,
              help='Prefer the configurations originally picked by eye when they are admissible.')
@click.option('--no-plots', is_flag=True, default=False, help='Skip writing plots.')
@click.option('--log-level', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
              default='WARNING', show_default=True)
def main(data_file, output_dir, n_jobs, timeout, ceilings, default_ceiling, by_eye, no_plots, log_level):
    """
    Fit natural splines, smoothing splines, loess and kernel smoothers to a
    monthly series, select one configuration per family and compare them.
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    series = Series.from_csv(data_file) if data_file is not None else load_uk_driver_deaths()
    click.echo(f"Loaded {len(series)} observations of '{series.name}' "
               f"({series.dates[0]} to {series.dates[-1]})")
    click.echo(f"Mean {np.mean(series.values):.1f}, sd {series.std():.1f}")

    options = {}
    if default_ceiling is not None:
        options['default_ceiling'] = default_ceiling
    config = AnalysisConfig(
        ceilings=ceilings,
        preferred=dict(BY_EYE_CHOICES) if by_eye else {},
        n_jobs=n_jobs,
        timeout=timeout,
        **options,
    )

    try:
        result = run_analysis(series, config)
    except NoViableConfigError as e:
        raise click.ClickException(str(e))

    print_result(result)

    if not no_plots:
        output_dir.mkdir(parents=True, exist_ok=True)
        plt.close(plot_series(series, output_dir / 'series.png'))
        for family, scored in result.scored.items():
            plt.close(plot_family_fits(series, scored, output_dir / f'{family}.png'))
        plt.close(plot_comparison(result.report, output_dir / 'comparison.png'))
        click.echo(f"\nPlots written to {output_dir}")


if __name__ == "__main__":
    main()
