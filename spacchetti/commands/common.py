"""
Shared helpers for spacchetti commands.
"""

import click

from ..config import configure_logging, load_config
from ..domain import Config
from ..errors import ConfigReadError
from ..evaluator import EvaluationError
from ..exit_codes import exit_with_code, get_exit_code_for_exception
from ..expr import TypeCheckError
from ..manifest import find_manifest, read_config
from ..render import render_error, render_evaluation_error, render_type_error


def manifest_options(f):
    """Manifest argument and --debug flag shared by every command."""
    f = click.option('--debug', is_flag=True, help='Enable debug logging')(f)
    f = click.argument('manifest', required=False, type=click.Path(dir_okay=False))(f)
    return f


def _fail(exc: BaseException, message: str):
    click.echo(message, err=True)
    exit_with_code(get_exit_code_for_exception(exc))


def load_manifest(manifest, debug: bool) -> Config:
    """Read the manifest for a command, exiting with a rendered error on failure."""
    settings = load_config()
    configure_logging(settings, debug=debug)
    path = find_manifest(manifest, settings)

    try:
        return read_config(path)
    except ConfigReadError as e:
        _fail(e, render_error(e, manifest=path.name))
    except TypeCheckError as e:
        _fail(e, render_type_error(e, manifest=path.name))
    except EvaluationError as e:
        _fail(e, render_evaluation_error(e))
    except FileNotFoundError as e:
        _fail(e, f"Error: {e}")
