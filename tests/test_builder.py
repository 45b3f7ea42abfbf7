"""End-to-end build tests with fake collaborators."""

import json

import pytest

from mle_module_loader.builder import build_package
from mle_module_loader.builder import prepare_output_dir
from mle_module_loader.errors import FetchError
from mle_module_loader.errors import MalformedIdentifierError
from mle_module_loader.logging_setup import RUN_LOG_NAME
from mle_module_loader.settings import LoaderSettings

LINKEDOM_SOURCES = {
    ("linkedom", "0.18.5", None): 'import{a}from"/npm/htmlparser2@9.1.0/+esm";import{b}from"/npm/html-escaper@3.0.3/+esm";',
    ("htmlparser2", "9.1.0", None): 'import{c}from"/npm/entities@4.5.0/lib/decode.js/+esm";import"/npm/entities@4.5.0/+esm";',
    ("html-escaper", "3.0.3", None): "export const escape = s => s;",
    ("entities", "4.5.0", None): 'export*from"/npm/entities@4.5.0/lib/decode.js/+esm";',
    ("entities", "4.5.0", "lib/decode.js"): "export const decode = s => s;",
}
LINKEDOM_DEPS = ["linkedom@0.18.5", "htmlparser2@9.1.0", "html-escaper@3.0.3", "entities@4.5.0", "entities@4.5.0"]


def test_build_linkedom(tmp_path, make_enumerator, make_fetcher):
    enumerator = make_enumerator(LINKEDOM_DEPS)
    fetcher = make_fetcher(LINKEDOM_SOURCES)

    outcome = build_package(
        "linkedom", LoaderSettings(), output_dir=tmp_path / "out", enumerator=enumerator, fetcher=fetcher
    )

    assert enumerator.requested == ["linkedom"]
    names = [r.logical_name for r in outcome.result.records]
    assert names == ["linkedom", "entities_decode", "htmlparser2", "html_escaper", "entities"]
    assert outcome.result.unresolved == ()

    js_dir = tmp_path / "out" / "js"
    assert (js_dir / "linkedom.js").read_text() == 'import{a}from"htmlparser2";import{b}from"html_escaper";'
    assert (js_dir / "htmlparser2.js").read_text() == 'import{c}from"entities_decode";import"entities";'

    install = outcome.scripts.install_script.read_text()
    assert "create or replace mle env linkedom_env" in install
    assert "'entities_decode' module entities_decode" in install


def test_build_writes_run_log(tmp_path, make_enumerator, make_fetcher):
    build_package(
        "linkedom",
        LoaderSettings(),
        output_dir=tmp_path / "out",
        enumerator=make_enumerator(LINKEDOM_DEPS),
        fetcher=make_fetcher(LINKEDOM_SOURCES),
    )

    lines = (tmp_path / "out" / RUN_LOG_NAME).read_text().splitlines()
    messages = [json.loads(line)["message"] for line in lines]
    assert any(m.startswith("Found dependency list:") for m in messages)
    assert any(m.startswith("Run ") and m.endswith("to compile MLE objects to the database.") for m in messages)


def test_fetch_failure_writes_no_scripts(tmp_path, make_enumerator, make_fetcher):
    sources = dict(LINKEDOM_SOURCES)
    del sources[("html-escaper", "3.0.3", None)]

    with pytest.raises(FetchError):
        build_package(
            "linkedom",
            LoaderSettings(),
            output_dir=tmp_path / "out",
            enumerator=make_enumerator(LINKEDOM_DEPS),
            fetcher=make_fetcher(sources),
        )

    assert not (tmp_path / "out" / "install.sql").exists()
    assert not (tmp_path / "out" / "js").exists()


def test_malformed_dependency_aborts(tmp_path, make_enumerator, make_fetcher):
    with pytest.raises(MalformedIdentifierError):
        build_package(
            "linkedom",
            LoaderSettings(),
            output_dir=tmp_path / "out",
            enumerator=make_enumerator(["linkedom@0.18.5", "broken"]),
            fetcher=make_fetcher(LINKEDOM_SOURCES),
        )


def test_prepare_output_dir_creates_temp_dir():
    path = prepare_output_dir("my-lib", None)
    assert path.is_dir()
    assert path.name.startswith("my_lib-")
    path.rmdir()


def test_prepare_output_dir_uses_given_dir(tmp_path):
    target = tmp_path / "a" / "b"
    assert prepare_output_dir("x", target) == target
    assert target.is_dir()
