#!/usr/bin/env python3
"""
CLI for the Streaming Template Packager

Usage: streaming-packager [OPTIONS] COMMAND [ARGS]...
"""

import sys
import json
import asyncio
import logging
import click
from pathlib import Path

from .. import __version__, setup_logging
from ..benchmark import PROFILES, StreamingBenchmark, summarize, write_reports
from ..errors import ConfigurationError, PackagingError
from ..services.packaging_service import StreamingPackagingService
from .config import build_streaming_options, get_default_config_path, load_config
from .config_validator import ConfigurationValidator

logger = logging.getLogger(__name__)

EXIT_FAILURE = 1
EXIT_CONFIGURATION = 2


def format_size(size_bytes: float) -> str:
    if size_bytes > 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    elif size_bytes > 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{int(size_bytes)} bytes"


def echo_metrics(metrics):
    click.echo(f"⏱️  Duration: {metrics.duration_millis}ms")
    click.echo(f"🧩 Chunks: {metrics.chunk_count}")
    if metrics.samples:
        click.echo(f"🧠 Peak memory: {format_size(metrics.peak_resident_bytes)}")
        click.echo(f"🧠 Average memory: {format_size(metrics.average_resident_bytes)} ({metrics.memory_trend})")
    if metrics.ceiling_breaches:
        click.echo(f"⚠️  Memory ceiling exceeded in {metrics.ceiling_breaches} samples")


def run_operation(ctx: click.Context, operation):
    """Run a service coroutine and map packaging errors to exit codes."""
    try:
        return asyncio.run(operation)
    except ConfigurationError as e:
        click.echo(f"❌ Configuration error: {e}", err=True)
        ctx.exit(EXIT_CONFIGURATION)
    except PackagingError as e:
        logger.debug("Operation failed", exc_info=True)
        click.echo(f"❌ {ctx.command.name.capitalize()} failed: {e}", err=True)
        ctx.exit(EXIT_FAILURE)


def check_output_path(ctx: click.Context, output_path: str):
    """Refuse unwritable output locations before any work starts."""
    is_valid, issues = ConfigurationValidator().validate_output_path(output_path)
    for issue in issues:
        click.echo(f"{'⚠️ ' if is_valid else '❌'} {issue}", err=True)
    if not is_valid:
        ctx.exit(EXIT_CONFIGURATION)


def route_logs_to_stderr(ctx: click.Context):
    """Keep stdout parseable when a command prints JSON."""
    setup_logging(*ctx.obj['log_settings'], stream=sys.stderr)


@click.group()
@click.version_option(version=__version__, prog_name='Streaming Template Packager')
@click.option('--config', 'config_path', type=click.Path(exists=True, dir_okay=False),
              help='Config file (default: config/packager.yaml when present)')
@click.option('--chunk-size-kb', type=int, help='Read chunk size in KB')
@click.option('--max-memory-mb', type=int, help='Advisory memory ceiling in MB')
@click.option('--no-monitoring', is_flag=True, help='Disable memory sampling')
@click.option('--temp-dir', type=click.Path(file_okay=False), help='Base directory for temp files')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
@click.pass_context
def cli(ctx, config_path, chunk_size_kb, max_memory_mb, no_monitoring, temp_dir, verbose):
    """Streaming Template Packager - bounded-memory template analysis and packaging."""
    try:
        config = load_config(config_path or get_default_config_path())
        log_config = config.get('logging', {})
        log_settings = ('DEBUG' if verbose else log_config.get('level', 'INFO'), log_config.get('file'))
        setup_logging(*log_settings)

        options = build_streaming_options(config, {
            'chunk_size_kb': chunk_size_kb,
            'max_memory_mb': max_memory_mb,
            'memory_monitoring': False if no_monitoring else None,
            'temp_directory': temp_dir
        })
    except ConfigurationError as e:
        click.echo(f"❌ Configuration error: {e}", err=True)
        ctx.exit(EXIT_CONFIGURATION)

    ctx.obj = {
        'config': config,
        'options': options,
        'service': StreamingPackagingService(options),
        'log_settings': log_settings
    }


@cli.command()
@click.argument('template', type=click.Path(exists=True, dir_okay=False))
@click.option('--json-output', is_flag=True, help='Output result as JSON')
@click.pass_context
def analyze(ctx, template, json_output):
    """
    Analyze a template with chunked reading.

    TEMPLATE: JSON or YAML deployment template
    """
    if json_output:
        route_logs_to_stderr(ctx)
    service = ctx.obj['service']
    result = run_operation(ctx, service.analyze_template(template))

    if json_output:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    click.echo("\n" + "=" * 50)
    click.echo("✅ ANALYSIS COMPLETED")
    click.echo("=" * 50)
    click.echo(f"📄 Template size: {format_size(result.template_size_bytes)}")
    click.echo(f"📦 Resources: {result.resource_count}")
    click.echo(f"🔧 Parameters: {result.parameter_count}")
    click.echo(f"📤 Outputs: {result.output_count}")
    click.echo(f"🎯 Complexity: {result.complexity}")
    echo_metrics(result.metrics)
    click.echo("=" * 50)


@cli.command()
@click.argument('source', type=click.Path(exists=True, file_okay=False, dir_okay=True))
@click.argument('destination', type=click.Path(dir_okay=False))
@click.option('--level', type=click.IntRange(0, 9), default=None,
              help='Compression level 0-9 (default: from config, 6)')
@click.option('--json-output', is_flag=True, help='Output result as JSON')
@click.pass_context
def archive(ctx, source, destination, level, json_output):
    """
    Build a ZIP package from a template directory.

    SOURCE: Package directory
    DESTINATION: Archive file to create
    """
    if json_output:
        route_logs_to_stderr(ctx)
    service = ctx.obj['service']
    if level is None:
        level = ctx.obj['config'].get('archive', {}).get('compression_level', 6)

    check_output_path(ctx, destination)
    result = run_operation(ctx, service.create_package_archive(source, destination, level))

    if json_output:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    click.echo("\n" + "=" * 50)
    click.echo("✅ ARCHIVE CREATED")
    click.echo("=" * 50)
    click.echo(f"📁 Files archived: {result.entry_count}")
    click.echo(f"📊 Original size: {format_size(result.metrics.input_size_bytes)}")
    click.echo(f"📦 Archive size: {format_size(result.archive_size_bytes)}")
    if result.metrics.compression_ratio is not None:
        click.echo(f"🗜️  Compression ratio: {result.metrics.compression_ratio:.2f}x")
    echo_metrics(result.metrics)
    click.echo(f"💾 Saved to: {result.archive_path}")
    click.echo("=" * 50)


@cli.command()
@click.argument('input_path', metavar='INPUT', type=click.Path(exists=True, dir_okay=False))
@click.argument('output_path', metavar='OUTPUT', type=click.Path(dir_okay=False))
@click.option('--json-output', is_flag=True, help='Output result as JSON')
@click.pass_context
def optimize(ctx, input_path, output_path, json_output):
    """
    Strip comments and collapse whitespace in template strings.

    INPUT: Template to optimize
    OUTPUT: Optimized template, written in the input's format
    """
    if json_output:
        route_logs_to_stderr(ctx)
    service = ctx.obj['service']
    check_output_path(ctx, output_path)
    result = run_operation(ctx, service.optimize_template(input_path, output_path))

    if json_output:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    click.echo("\n" + "=" * 50)
    click.echo("✅ OPTIMIZATION COMPLETED")
    click.echo("=" * 50)
    click.echo(f"💬 Comments removed: {result.counters.comments_removed}")
    click.echo(f"📐 Whitespace compactions: {result.counters.whitespace_compactions}")
    click.echo(f"🌳 Subtrees visited: {result.counters.subtrees_visited}")
    click.echo(f"📉 Size reduction: {result.size_reduction * 100:.1f}%")
    echo_metrics(result.metrics)
    click.echo(f"💾 Saved to: {result.output_path}")
    click.echo("=" * 50)


@cli.command()
@click.option('--output-dir', type=click.Path(file_okay=False), default='.',
              help='Directory for the benchmark reports')
@click.option('--work-dir', type=click.Path(file_okay=False), default=None,
              help='Scratch directory for generated templates (default: <temp-dir>/benchmark)')
@click.option('--profiles', default='small,medium,large,enterprise',
              help=f"Comma-separated profiles ({', '.join(PROFILES)})")
@click.pass_context
def benchmark(ctx, output_dir, work_dir, profiles):
    """Benchmark all operations on synthetic templates."""
    names = [name.strip() for name in profiles.split(',') if name.strip()]
    unknown = [name for name in names if name not in PROFILES]
    if unknown:
        raise click.BadParameter(f"Unknown profiles: {', '.join(unknown)}", param_hint='--profiles')

    scratch = Path(work_dir) if work_dir else ctx.obj['options'].temp_directory / 'benchmark'
    runner = StreamingBenchmark(scratch)

    click.echo(f"🚀 Running streaming benchmark: {', '.join(names)}")
    results = asyncio.run(runner.run(names))
    json_path, markdown_path = write_reports(results, Path(output_dir))

    summary = summarize(results)
    click.echo(f"\n✅ Successful tests: {summary['successful_tests']}/{summary['total_tests']}")
    click.echo(f"📊 Average throughput: {summary['average_throughput_mb_per_second']:.2f} MB/s")
    click.echo(f"🧠 Average memory efficiency: {summary['average_memory_efficiency']:.4f}x")
    for result in results:
        if not result.success:
            click.echo(f"❌ {result.profile.name}: {result.error}")
    click.echo(f"💾 Reports: {json_path}, {markdown_path}")

    if summary['successful_tests'] != summary['total_tests']:
        ctx.exit(EXIT_FAILURE)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
