"""Command-line interface for testoracle."""

import logging
import sys
from pathlib import Path

import click

from .analyzer import ParseError, analyze_file, find_methods, scan_directory
from .config import ConfigLoadError, ConfigValidationError, OracleConfig, load_config
from .executor import TestExecutor
from .generator import GenerationError, InvalidInputError, TestGenerator
from .inference import InferenceError, ModelManager, ModelStatus
from .output.formatter import format_local_models, format_methods, format_test_cases
from .store import StoreError, TestCaseStore, TestStatus, store_from_config
from .workers import Overloaded

FAILING_STATUSES = {TestStatus.FAILED, TestStatus.ERROR}


def _fail(message: str) -> None:
    click.echo(message, err=True)
    sys.exit(2)


def _open_store(config: OracleConfig) -> TestCaseStore:
    try:
        return store_from_config(config.storage)
    except StoreError as e:
        _fail(f"Storage error: {e}")


@click.group()
@click.version_option(package_name="testoracle")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="YAML configuration file (defaults to $TESTORACLE_CONFIG)",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log progress to stderr")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: bool):
    """testoracle: generate and run unit tests with a local language model."""
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    try:
        ctx.obj = load_config(config_path)
    except ConfigLoadError as e:
        _fail(f"Error loading configuration: {e}")
    except ConfigValidationError as e:
        click.echo(f"Configuration error: {e}", err=True)
        for err in e.errors:
            click.echo(f"  - {err['loc']}: {err['msg']}", err=True)
        sys.exit(2)


@main.command()
@click.argument("source", type=click.Path(exists=True))
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format",
)
@click.option("--private", is_flag=True, default=False, help="Include _private functions")
def analyze(source: str, output_format: str, private: bool):
    """List the testable methods in a Python file or directory.

    Exit codes:
      0 - Success
      2 - Source could not be parsed
    """
    path = Path(source)
    try:
        if path.is_dir():
            methods = scan_directory(path, include_private=private)
        else:
            methods = analyze_file(path, include_private=private)
    except ParseError as e:
        _fail(f"Parse error: {e}")

    click.echo(format_methods(methods, output_format))  # type: ignore
    sys.exit(0)


@main.command()
@click.argument("source", type=click.Path(exists=True, dir_okay=False))
@click.option("--package", "package_name", default=None, help="Module path of SOURCE")
@click.option("--class", "class_name", default=None, help="Only methods of this class")
@click.option("--method", "method_name", default=None, help="Only methods with this name")
@click.pass_obj
def generate(
    config: OracleConfig,
    source: str,
    package_name: str | None,
    class_name: str | None,
    method_name: str | None,
):
    """Generate and store a test for each method in SOURCE.

    Exit codes:
      0 - All tests generated
      2 - Parse, model or storage error
    """
    try:
        methods = analyze_file(source, package_name=package_name)
    except ParseError as e:
        _fail(f"Parse error: {e}")

    methods = find_methods(methods, class_name=class_name, method_name=method_name)
    if not methods:
        click.echo("No matching methods found")
        sys.exit(0)

    store = _open_store(config)
    manager = ModelManager.from_config(config)
    try:
        report = TestGenerator(manager, store, config).generate_tests(methods)
    except (GenerationError, InferenceError) as e:
        _fail(f"Generation error: {e}")
    finally:
        manager.shutdown()

    for tc in report.generated:
        click.echo(f"Generated {tc.id} {tc.class_name}.{tc.method_name}")
    for failure in report.failures:
        click.echo(f"Failed {failure.method.signature}: {failure.error}", err=True)

    click.echo(f"\nGenerated {len(report.generated)} of {report.total} test(s)")
    sys.exit(2 if report.has_failures else 0)


@main.command()
@click.argument("test_ids", nargs=-1)
@click.option(
    "--all-generated",
    is_flag=True,
    default=False,
    help="Execute every test case still in GENERATED",
)
@click.option("--wait/--no-wait", default=True, help="Wait for results and report them")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format",
)
@click.pass_obj
def execute(
    config: OracleConfig,
    test_ids: tuple[str, ...],
    all_generated: bool,
    wait: bool,
    output_format: str,
):
    """Compile and run stored test cases.

    Exit codes:
      0 - All executed tests passed
      1 - At least one test failed or errored
      2 - Unknown test case, invalid state or executor overloaded

    With --no-wait the queued ids are printed at once; the runs still finish
    and record their results before the command returns.
    """
    if not test_ids and not all_generated:
        _fail("Give one or more test case ids or --all-generated")

    store = _open_store(config)
    executor = TestExecutor(store, config=config)
    try:
        if all_generated:
            handles = executor.execute_all_with_status(TestStatus.GENERATED)
        else:
            handles = [executor.execute_test(test_id) for test_id in test_ids]

        if not wait:
            for handle in handles:
                click.echo(f"Queued {handle.test_id}")
            sys.exit(0)

        results = [handle.result() for handle in handles]
    except (StoreError, Overloaded) as e:
        _fail(f"Execution error: {e}")
    finally:
        executor.shutdown(wait=True, cancel=wait)

    click.echo(format_test_cases(results, output_format))  # type: ignore
    sys.exit(1 if any(tc.status in FAILING_STATUSES for tc in results) else 0)


@main.command("list")
@click.option(
    "--status",
    type=click.Choice([s.value for s in TestStatus], case_sensitive=False),
    default=None,
    help="Only test cases in this status",
)
@click.option("--class", "class_name", default=None, help="Only test classes containing this name")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format",
)
@click.pass_obj
def list_cmd(config: OracleConfig, status: str | None, class_name: str | None, output_format: str):
    """List stored test cases."""
    store = _open_store(config)

    if status:
        cases = store.find_by_status(TestStatus(status.upper()))
    elif class_name:
        cases = store.find_by_class(class_name)
    else:
        cases = store.find_all()

    if status and class_name:
        cases = [tc for tc in cases if class_name in tc.class_name]

    click.echo(format_test_cases(cases, output_format))  # type: ignore
    sys.exit(0)


@main.group()
def models():
    """Inspect and manage the local models."""
    pass


@models.command("status")
@click.argument("name", required=False)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format",
)
@click.pass_obj
def models_status(config: OracleConfig, name: str | None, output_format: str):
    """Show whether one or all configured models are downloaded."""
    manager = ModelManager(config)
    names = [name] if name else manager.known_models()
    click.echo(format_local_models([manager.local_model(n) for n in names], output_format))  # type: ignore
    sys.exit(0)


@models.command("load")
@click.argument("name")
@click.pass_obj
def models_load(config: OracleConfig, name: str):
    """Download, quantize and load a model, reporting the outcome.

    Exit codes:
      0 - Model loaded
      2 - Model failed to load
    """
    manager = ModelManager.from_config(config)
    try:
        status = manager.ensure_loaded(name)
    except (InferenceError, Overloaded) as e:
        _fail(f"Model error: {e}")
    finally:
        manager.shutdown()

    click.echo(f"{name}: {status.value}")
    sys.exit(0 if status == ModelStatus.LOADED else 2)


@models.command("remove")
@click.argument("name")
@click.confirmation_option(prompt="Delete the local files of this model?")
@click.pass_obj
def models_remove(config: OracleConfig, name: str):
    """Delete a model's downloaded and quantized files.

    Exit codes:
      0 - Files removed, or nothing to remove
      2 - Files could not be removed
    """
    manager = ModelManager(config)
    try:
        removed = manager.remove_local(name)
    except InferenceError as e:
        _fail(f"Model error: {e}")

    if not removed:
        click.echo(f"No local files for {name}")
    for path in removed:
        click.echo(f"Removed {path}")
    sys.exit(0)


if __name__ == "__main__":
    main()
