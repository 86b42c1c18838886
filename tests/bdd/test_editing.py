"""BDD step definitions for layout editing."""

from pathlib import Path

import pytest
from pytest_bdd import given, parsers, scenario, then, when

from scanbatch.adapters.layout import build_alto, read_alto
from scanbatch.domain.errors import DocumentLocked
from scanbatch.domain.layout import LayoutDocument, parse_path
from scanbatch.editor import CommandInterpreter, EditorSession


@scenario("features/editor.feature", "Corrected word survives save and reload")
def test_edit_survives_reload() -> None:
    pass


@scenario("features/editor.feature", "Undo restores a merge")
def test_undo_merge() -> None:
    pass


@scenario("features/editor.feature", "Second editor is locked out")
def test_second_editor_locked() -> None:
    pass


@pytest.fixture
def context(tmp_path: Path):
    """Shared test context; closes any session left open."""
    ctx = {"tmp_path": tmp_path}
    yield ctx
    if "session" in ctx:
        ctx["session"].close()


@given(parsers.parse('a converted page "{page_id}"'))
def converted_page(context: dict, sample_document: LayoutDocument, page_id: str) -> None:
    out = context["tmp_path"] / "output" / "batch01"
    out.mkdir(parents=True)
    path = out / f"{page_id}.xml"
    path.write_text(build_alto(sample_document), encoding="utf-8")
    context["document"] = path


@when("I open the page in the editor")
def open_editor(context: dict) -> None:
    session = EditorSession(context["document"]).open()
    context["session"] = session
    context["interpreter"] = CommandInterpreter(session)


@when(parsers.parse('I run "{line}"'))
def run_command(context: dict, line: str) -> None:
    reply = context["interpreter"].execute(line)
    assert not reply.text.startswith(("rejected:", "error:")), reply.text


@when("I close the editor")
def close_editor(context: dict) -> None:
    context.pop("session").close()


@then(parsers.parse('reopening the page shows "{text}" at "{path}"'))
def reopened_text(context: dict, text: str, path: str) -> None:
    with EditorSession(context["document"]) as session:
        assert session.document.get(parse_path(path)).text == text


@then(parsers.parse('the plain text of the page contains "{text}"'))
def plain_text_contains(context: dict, text: str) -> None:
    plain = context["document"].with_suffix(".txt").read_text(encoding="utf-8")
    assert text in plain


@then(parsers.parse('the line "{path}" reads "{text}" with {count:d} words'))
def line_reads(context: dict, path: str, text: str, count: int) -> None:
    line = context["session"].document.get(parse_path(path))
    assert line.text == text
    assert len(line.words) == count


@then("opening the page again fails with a lock error")
def second_open_locked(context: dict) -> None:
    with pytest.raises(DocumentLocked):
        EditorSession(context["document"]).open()
    assert read_alto(context["document"]).get((0, 0, 0)).text == "Hello"
