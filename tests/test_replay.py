import importlib.util
import json

from conftest import CHATGPT_URL, NEURAL_TEXT, SUBJECTIVE_TEXT, ROOT, chat_page


def load_replay():
    spec = importlib.util.spec_from_file_location("replay_page", ROOT / "scripts" / "replay_page.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_replay_json_report(tmp_path, capsys):
    page_file = tmp_path / "page.html"
    page_file.write_text(chat_page(NEURAL_TEXT, SUBJECTIVE_TEXT), encoding="utf-8")
    output = tmp_path / "annotated.html"

    replay = load_replay()
    code = replay.main([str(page_file), "--url", CHATGPT_URL, "--json", "--output", str(output)])

    assert code == 0
    report = json.loads(capsys.readouterr().out)
    assert sorted(entry["verdict"]["score"] for entry in report) == ["high", "low"]
    assert "hallucination-lens-overlay" in output.read_text(encoding="utf-8")


def test_replay_rejects_unsupported_site(tmp_path, capsys):
    page_file = tmp_path / "page.html"
    page_file.write_text(chat_page(NEURAL_TEXT), encoding="utf-8")

    code = load_replay().main([str(page_file), "--url", "https://example.com/"])

    assert code == 1
    assert "Unsupported platform" in capsys.readouterr().out
