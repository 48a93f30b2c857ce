from pathlib import Path
import ast
import sys

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from generate_presets_source import generate_presets_source, render_source
from binauralsession_core.presets import BUILTIN_PROGRAMS
from binauralsession_core.utils.progression_file import ProgressionSlot, SavedProgression, save_progression


def _programs_in(path):
    tree = ast.parse(path.read_text(encoding="utf-8"))
    for node in tree.body:
        if isinstance(node, ast.Assign) and node.targets[0].id == "BUILTIN_PROGRAMS":
            return ast.literal_eval(node.value)
    raise AssertionError("BUILTIN_PROGRAMS not found")


def test_progression_files_become_programs(tmp_path):
    progression = save_progression(
        SavedProgression(
            name="Late Study",
            slots=[ProgressionSlot(200.0, 214.0, 20.0), ProgressionSlot(180.0, 190.0, 10.0)],
        ),
        str(tmp_path / "late_study"),
    )
    output = tmp_path / "presets.py"

    programs = generate_presets_source([str(progression)], ["quick_nap"], output)

    assert "late_study" in programs
    assert "quick_nap" not in programs
    written = _programs_in(output)
    assert written == programs
    stages = written["late_study"]["stages"]
    assert written["late_study"]["label"] == "Late Study"
    assert [stage["carrier_hz"] for stage in stages] == [207.0, 185.0]
    assert [stage["duration_seconds"] for stage in stages] == [1200.0, 600.0]


def test_unknown_files_are_skipped(tmp_path, capsys):
    notes = tmp_path / "notes.txt"
    notes.write_text("nothing", encoding="utf-8")
    output = tmp_path / "presets.py"

    programs = generate_presets_source([str(notes), str(tmp_path / "gone.progression")], None, output)

    assert set(programs) == set(BUILTIN_PROGRAMS)
    out = capsys.readouterr().out
    assert "Skipping unknown file type" in out
    assert "File not found" in out


def test_render_source_is_valid_python():
    source = render_source(BUILTIN_PROGRAMS)
    namespace = {}
    exec(compile(source, "presets.py", "exec"), namespace)
    assert namespace["BUILTIN_PROGRAMS"] == BUILTIN_PROGRAMS
