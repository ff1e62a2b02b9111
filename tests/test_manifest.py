"""
Tests for evaluating and reading manifests.

The end-to-end tests run the real Dhall evaluator and are skipped when
the ``dhall`` library is not importable.
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from spacchetti.decoder import manifest_type
from spacchetti.domain import PackageName
from spacchetti.errors import ConfigIsNotRecord, KeyIsMissing, PackagesIsNotRecord, WrongPackageType
from spacchetti.evaluator import DhallSource, EvaluationError, _import_expression, evaluate, evaluate_file
from spacchetti.expr import (
    INTEGER, ListLit, ListType, NATURAL, OptionalType, RecordLit, SomeLit, TEXT, TextLit,
    TypeCheckError,
)
from spacchetti.manifest import find_manifest, parse_config, read_config

MANIFEST = """
{ name = "my-project"
, dependencies = [ "prelude", "effect" ]
, packages =
    { prelude =
        { dependencies = [] : List Text
        , repo = "https://github.com/purescript/purescript-prelude.git"
        , version = "v4.1.0"
        }
    , effect =
        { dependencies = [ "prelude" ]
        , repo = "https://github.com/purescript/purescript-effect.git"
        , version = "v2.0.0"
        }
    }
}
"""


@pytest.fixture
def fake_dhall():
    """Stand-in for the dhall module so evaluator plumbing can be tested alone."""
    module = MagicMock()
    with patch.dict(sys.modules, {'dhall': module}):
        yield module


class TestEvaluatorPlumbing:

    def test_evaluate_lifts_result(self, fake_dhall):
        fake_dhall.loads.return_value = {'name': "x"}
        assert evaluate("{ name = \"x\" }") == RecordLit((('name', TextLit("x")),))
        fake_dhall.loads.assert_called_once_with("{ name = \"x\" }")

    def test_evaluate_wraps_library_errors(self, fake_dhall):
        fake_dhall.loads.side_effect = RuntimeError("parse error")
        with pytest.raises(EvaluationError) as exc_info:
            evaluate("{", source="bad.dhall")
        assert exc_info.value.message == "parse error"
        assert exc_info.value.source == "bad.dhall"
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_evaluate_rejects_unrepresentable_values(self, fake_dhall):
        fake_dhall.loads.return_value = object()
        with pytest.raises(EvaluationError):
            evaluate("x")

    def test_evaluate_file_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            evaluate_file(tmp_path / "nope.dhall")

    def test_evaluate_file_imports_absolute_path(self, fake_dhall, tmp_path):
        manifest = tmp_path / "spacchetti.dhall"
        manifest.write_text("42")
        fake_dhall.loads.return_value = 42
        evaluate_file(manifest)
        (text,), _ = fake_dhall.loads.call_args
        assert text == _import_expression(manifest)

    def test_import_expression_quotes_components(self):
        text = _import_expression(Path('/tmp/my dir/spacchetti.dhall'))
        assert text.endswith('/"my dir"/"spacchetti.dhall"')
        assert text.startswith('/"')

    def test_import_expression_rejects_quotes(self):
        with pytest.raises(EvaluationError, match="cannot be written as a Dhall import"):
            _import_expression(Path('/tmp/say "hi"/spacchetti.dhall'))

    def test_read_config_path_with_quote(self, fake_dhall, tmp_path):
        directory = tmp_path / 'say "hi"'
        directory.mkdir()
        (directory / "spacchetti.dhall").write_text("{=}")
        with pytest.raises(EvaluationError) as exc_info:
            read_config(directory / "spacchetti.dhall")
        assert exc_info.value.source == str(directory / "spacchetti.dhall")
        fake_dhall.loads.assert_not_called()

    def test_parse_config_decodes(self, fake_dhall):
        fake_dhall.loads.return_value = {
            'name': "demo",
            'dependencies': [],
            'packages': {'prelude': {'dependencies': [], 'repo': "r", 'version': "v"}},
        }
        config = parse_config("...")
        assert config.name == "demo"
        assert PackageName("prelude") in config.packages

    def test_parse_config_scalar(self, fake_dhall):
        fake_dhall.loads.return_value = 42
        with pytest.raises(ConfigIsNotRecord) as exc_info:
            parse_config("42")
        assert exc_info.value.type_expr == NATURAL


PACKAGE = '{ dependencies : List Text, repo : Text, version : Text }'


def script(fake_dhall, text, value, accepts):
    """Evaluate ``text`` to ``value``; any other query succeeds when ``accepts`` it."""
    def loads(query):
        if query == text:
            return value
        if accepts(query):
            return None
        raise RuntimeError("Error: Expression doesn't match annotation")
    fake_dhall.loads.side_effect = loads


class TestEvaluatorQueries:
    """The evaluator is asked again for what the lifted value cannot show."""

    def test_query_syntax(self, fake_dhall):
        source = DhallSource("x -- trailing comment")
        assert source.is_record(('packages',))
        (query,), _ = fake_dhall.loads.call_args
        assert query == "(\nx -- trailing comment\n).`packages`.{}"
        source.has_type(('packages', 'a'), ListType(TEXT))
        (query,), _ = fake_dhall.loads.call_args
        assert query.endswith(").`packages`.`a` : List Text")

    def test_projection(self, fake_dhall):
        expected = manifest_type(RecordLit((('packages', RecordLit()),)))
        DhallSource("x").has_type((), expected, project=True)
        (query,), _ = fake_dhall.loads.call_args
        assert ".{ `name`, `dependencies`, `packages` } : " in query

    def test_well_typed_manifest_needs_one_query(self, fake_dhall):
        fake_dhall.loads.return_value = {
            'name': "demo",
            'dependencies': [],
            'packages': {'a': {'dependencies': [], 'repo': "r", 'version': "v"}},
        }
        parse_config("...")
        assert fake_dhall.loads.call_count == 2

    def test_optional_version_is_not_a_package(self, fake_dhall):
        value = {
            'name': "demo",
            'dependencies': [],
            'packages': {'a': {'dependencies': [], 'repo': "r", 'version': "v"}},
        }

        def accepts(query):
            if '.{ `name`' in query or query.endswith('.`packages`.`a` : ' + PACKAGE):
                return False
            return not query.endswith('.`version` : Text')

        script(fake_dhall, "...", value, accepts)
        with pytest.raises(WrongPackageType) as exc_info:
            parse_config("...")
        assert exc_info.value.expr == RecordLit((
            ('dependencies', ListLit((), TEXT)),
            ('repo', TextLit("r")),
            ('version', SomeLit(TextLit("v"))),
        ))

    def test_optional_name(self, fake_dhall):
        value = {'name': "x", 'dependencies': [], 'packages': {}}

        def accepts(query):
            return '.{ `name`' not in query and not query.endswith('.`name` : Text')

        script(fake_dhall, "...", value, accepts)
        with pytest.raises(KeyIsMissing) as exc_info:
            parse_config("...")
        assert exc_info.value.key == "name"

    def test_integer_root(self, fake_dhall):
        script(fake_dhall, "+1", 1, lambda query: query.endswith(" : Integer"))
        with pytest.raises(ConfigIsNotRecord) as exc_info:
            parse_config("+1")
        assert exc_info.value.type_expr == INTEGER

    def test_optional_root(self, fake_dhall):
        script(fake_dhall, "None Natural", None, lambda query: query.endswith(" : Optional Natural"))
        with pytest.raises(ConfigIsNotRecord) as exc_info:
            parse_config("None Natural")
        assert exc_info.value.type_expr == OptionalType(NATURAL)

    def test_annotated_empty_list_root(self, fake_dhall):
        script(fake_dhall, "[] : List Text", [], lambda query: query.endswith(" : List Text"))
        with pytest.raises(ConfigIsNotRecord) as exc_info:
            parse_config("[] : List Text")
        assert exc_info.value.type_expr == ListType(TEXT)

    def test_unknown_root_type_is_not_guessed(self, fake_dhall):
        script(fake_dhall, "None (List Bool)", None, lambda query: False)
        with pytest.raises(TypeCheckError, match="Cannot infer the type"):
            parse_config("None (List Bool)")


class TestFindManifest:

    def test_explicit_path_wins(self):
        assert find_manifest("other.dhall", {'manifest': 'x.dhall'}) == Path("other.dhall")

    def test_setting(self):
        assert find_manifest(None, {'manifest': 'x.dhall'}) == Path("x.dhall")

    def test_default(self):
        assert find_manifest(None, {}) == Path("spacchetti.dhall")


class TestWithDhall:
    """End-to-end through the real evaluator."""

    @pytest.fixture(autouse=True)
    def _require_dhall(self):
        pytest.importorskip("dhall")

    def test_parse_manifest(self):
        config = parse_config(MANIFEST)
        assert config.name == "my-project"
        assert config.dependencies == (PackageName("prelude"), PackageName("effect"))
        assert config.get_package("effect").dependencies == (PackageName("prelude"),)
        assert config.get_package("prelude").version == "v4.1.0"

    def test_read_config_resolves_relative_imports(self, tmp_path):
        (tmp_path / "packages.dhall").write_text(
            '{ prelude = { dependencies = [] : List Text, repo = "r", version = "v1" } }'
        )
        (tmp_path / "spacchetti.dhall").write_text(
            '{ name = "p", dependencies = [ "prelude" ], packages = ./packages.dhall }'
        )
        config = read_config(tmp_path / "spacchetti.dhall")
        assert config.get_package("prelude").version == "v1"

    def test_scalar_manifest(self):
        with pytest.raises(ConfigIsNotRecord):
            parse_config("1")

    def test_missing_name(self):
        with pytest.raises(KeyIsMissing):
            parse_config('{ dependencies = [] : List Text, packages = {=} }')

    def test_packages_is_list(self):
        with pytest.raises(PackagesIsNotRecord):
            parse_config('{ name = "p", dependencies = [] : List Text, packages = [ "a" ] }')

    def test_package_missing_version(self):
        with pytest.raises(WrongPackageType):
            parse_config(
                '{ name = "p", dependencies = [] : List Text, packages = '
                '{ a = { dependencies = [] : List Text, repo = "https://example/repo" } } }'
            )

    def test_syntax_error(self):
        with pytest.raises(EvaluationError):
            parse_config('{ name = ')

    def test_optional_package_field(self):
        with pytest.raises(WrongPackageType) as exc_info:
            parse_config(
                '{ name = "p", dependencies = [] : List Text, packages = '
                '{ a = { dependencies = [] : List Text, repo = "r", version = Some "v" } } }'
            )
        assert exc_info.value.expr.get('version') == SomeLit(TextLit("v"))

    def test_optional_name(self):
        with pytest.raises(KeyIsMissing) as exc_info:
            parse_config('{ name = Some "p", dependencies = [] : List Text, packages = {=} }')
        assert exc_info.value.key == "name"

    def test_integer_root(self):
        with pytest.raises(ConfigIsNotRecord) as exc_info:
            parse_config("+1")
        assert exc_info.value.type_expr == INTEGER

    def test_optional_root(self):
        with pytest.raises(ConfigIsNotRecord) as exc_info:
            parse_config("None Natural")
        assert exc_info.value.type_expr == OptionalType(NATURAL)

    def test_annotated_empty_list_root(self):
        with pytest.raises(ConfigIsNotRecord) as exc_info:
            parse_config("[] : List Text")
        assert exc_info.value.type_expr == ListType(TEXT)
