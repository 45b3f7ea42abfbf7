"""Tests for CDN reference rewriting."""

import itertools

from mle_module_loader.entry_points import EntryPointOverride
from mle_module_loader.entry_points import StaticEntryPointRegistry
from mle_module_loader.identifiers import ModuleIdentity
from mle_module_loader.identifiers import parse_identifier
from mle_module_loader.references import find_unresolved
from mle_module_loader.references import reference_pattern
from mle_module_loader.references import rewrite_module

EMPTY = StaticEntryPointRegistry()


def _baz_registry():
    return StaticEntryPointRegistry({"baz": [EntryPointOverride(relative_path="lib/x.js", logical_name="baz_x")]})


def _primary(token):
    return ModuleIdentity.primary(parse_identifier(token))


class TestReferencePattern:
    def test_default_entry_point(self):
        assert reference_pattern("bar", "2.0.0") == "/npm/bar@2.0.0/+esm"

    def test_secondary_entry_point(self):
        assert reference_pattern("entities", "4.5.0", "lib/decode.js") == "/npm/entities@4.5.0/lib/decode.js/+esm"


class TestFindUnresolved:
    def test_finds_distinct_paths_in_order(self):
        text = 'import a from "/npm/x@1.0.0/+esm";import b from "/npm/y@2.0.0/lib/z.js/+esm";import c from "/npm/x@1.0.0/+esm";'
        assert find_unresolved(text) == ["/npm/x@1.0.0/+esm", "/npm/y@2.0.0/lib/z.js/+esm"]

    def test_none_in_clean_text(self):
        assert find_unresolved('import a from "bar";') == []


class TestRewriteModule:
    def test_replaces_sibling_reference(self, deps):
        dependency_set = deps("foo@1.0.0", "bar@2.0.0")
        source = 'import{x}from"/npm/bar@2.0.0/+esm";export default x;'

        result = rewrite_module(_primary("foo@1.0.0"), source, dependency_set, EMPTY)

        assert result.text == 'import{x}from"bar";export default x;'
        assert result.unresolved == []
        assert result.obligations == []
        assert result.is_closed

    def test_replaces_every_occurrence(self, deps):
        dependency_set = deps("foo@1.0.0", "my-lib@1.2.3")
        source = '"/npm/my-lib@1.2.3/+esm";"/npm/my-lib@1.2.3/+esm";'

        result = rewrite_module(_primary("foo@1.0.0"), source, dependency_set, EMPTY)

        assert result.text == '"my_lib";"my_lib";'

    def test_self_reference_left_alone(self, deps):
        dependency_set = deps("foo@1.0.0")
        source = '//# sourceMappingURL=/npm/foo@1.0.0/+esm'

        result = rewrite_module(_primary("foo@1.0.0"), source, dependency_set, EMPTY)

        assert result.text == source
        assert result.unresolved == ["/npm/foo@1.0.0/+esm"]

    def test_other_version_not_replaced(self, deps):
        dependency_set = deps("foo@1.0.0", "bar@2.0.0")
        source = '"/npm/bar@3.0.0/+esm"'

        result = rewrite_module(_primary("foo@1.0.0"), source, dependency_set, EMPTY)

        assert result.text == source
        assert result.unresolved == ["/npm/bar@3.0.0/+esm"]

    def test_unknown_package_reported(self, deps):
        dependency_set = deps("foo@1.0.0", "bar@2.0.0")
        source = '"/npm/bar@2.0.0/+esm";"/npm/ghost@9.9.9/+esm"'

        result = rewrite_module(_primary("foo@1.0.0"), source, dependency_set, EMPTY)

        assert result.text == '"bar";"/npm/ghost@9.9.9/+esm"'
        assert result.unresolved == ["/npm/ghost@9.9.9/+esm"]
        assert not result.is_closed

    def test_secondary_entry_point_emits_obligation(self, deps):
        dependency_set = deps("foo@1.0.0", "baz@1.1.0")
        source = '"/npm/baz@1.1.0/lib/x.js/+esm";"/npm/baz@1.1.0/lib/x.js/+esm"'

        result = rewrite_module(_primary("foo@1.0.0"), source, dependency_set, _baz_registry())

        assert result.text == '"baz_x";"baz_x"'
        assert result.obligations == [ModuleIdentity("baz", "1.1.0", "baz_x", "lib/x.js")]
        assert result.unresolved == []

    def test_secondary_entry_point_in_own_package(self, deps):
        dependency_set = deps("baz@1.1.0")
        source = 'export*from"/npm/baz@1.1.0/lib/x.js/+esm";'

        result = rewrite_module(_primary("baz@1.1.0"), source, dependency_set, _baz_registry())

        assert result.text == 'export*from"baz_x";'
        assert [o.logical_name for o in result.obligations] == ["baz_x"]

    def test_no_obligation_when_override_absent_from_text(self, deps):
        dependency_set = deps("foo@1.0.0", "baz@1.1.0")
        source = '"/npm/baz@1.1.0/+esm"'

        result = rewrite_module(_primary("foo@1.0.0"), source, dependency_set, _baz_registry())

        assert result.text == '"baz"'
        assert result.obligations == []

    def test_secondary_module_resolves_its_primary(self, deps):
        dependency_set = deps("baz@1.1.0")
        target = ModuleIdentity("baz", "1.1.0", "baz_x", "lib/x.js")
        source = '"/npm/baz@1.1.0/+esm";"/npm/baz@1.1.0/lib/x.js/+esm"'

        result = rewrite_module(target, source, dependency_set, _baz_registry())

        assert result.text == '"baz";"/npm/baz@1.1.0/lib/x.js/+esm"'
        assert result.obligations == []

    def test_unregistered_path_is_unresolved(self, deps):
        dependency_set = deps("foo@1.0.0", "baz@1.1.0")
        source = '"/npm/baz@1.1.0/lib/y.js/+esm"'

        result = rewrite_module(_primary("foo@1.0.0"), source, dependency_set, _baz_registry())

        assert result.unresolved == ["/npm/baz@1.1.0/lib/y.js/+esm"]

    def test_substitution_is_order_independent(self, deps):
        tokens = ["foo@1.0.0", "bar@2.0.0", "my-lib@1.2.3", "baz@1.1.0"]
        source = (
            'import"/npm/bar@2.0.0/+esm";import"/npm/my-lib@1.2.3/+esm";'
            'import"/npm/baz@1.1.0/+esm";import"/npm/baz@1.1.0/lib/x.js/+esm";'
        )
        target = _primary("foo@1.0.0")
        outputs = {
            rewrite_module(target, source, deps(*perm), _baz_registry()).text for perm in itertools.permutations(tokens)
        }
        assert outputs == {'import"bar";import"my_lib";import"baz";import"baz_x";'}
