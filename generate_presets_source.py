import argparse
import glob
import pprint
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

# We assume the script is run from the project root
sys.path.insert(0, str(Path(__file__).resolve().parent))

from binauralsession_core.utils.progression_file import (  # noqa: E402
    PROGRESSION_FILE_EXTENSION,
    load_progression,
    progression_to_timeline,
)

OUTPUT_PATH = Path(__file__).resolve().parent / "binauralsession_core" / "presets.py"


def load_existing_programs() -> Dict[str, Dict[str, Any]]:
    try:
        from binauralsession_core.presets import BUILTIN_PROGRAMS
    except ImportError:
        print("# binauralsession_core/presets.py could not be imported. Starting fresh.")
        return {}
    print("# Loaded existing programs from binauralsession_core/presets.py")
    return {name: dict(data) for name, data in BUILTIN_PROGRAMS.items()}


def program_from_progression(path: Path) -> Dict[str, Any]:
    progression = load_progression(str(path))
    timeline = progression_to_timeline(progression)
    return {
        "label": progression.name or path.stem.replace("_", " ").title(),
        "description": f"Generated from {path.name}.",
        "stages": [stage.to_dict() for stage in timeline.stages],
    }


def render_source(programs: Dict[str, Dict[str, Any]]) -> str:
    output = [
        '"""Built-in session programs.',
        "",
        "The structures mirror the output of :mod:`generate_presets_source` so code",
        "can treat them exactly like programs generated from progression files.",
        '"""',
        "",
        "BUILTIN_PROGRAMS = {",
    ]
    for name, data in sorted(programs.items()):
        formatted_data = pprint.pformat(data, indent=4, width=120, sort_dicts=False)
        output.append(f'    "{name}": {formatted_data},')
    output.append("}")
    output.append("")
    output.append('__all__ = ["BUILTIN_PROGRAMS"]')
    output.append("")
    return "\n".join(output)


def generate_presets_source(
    input_files: List[str],
    remove_list: Optional[List[str]],
    output_path: Path = OUTPUT_PATH,
) -> Dict[str, Dict[str, Any]]:
    programs = load_existing_programs()

    files_to_process = []
    for pattern in input_files or []:
        expanded = glob.glob(pattern)
        files_to_process.extend(expanded or [pattern])

    for file_path in files_to_process:
        path_obj = Path(file_path)
        if not path_obj.exists():
            print(f"# File not found: {file_path}")
            continue
        if path_obj.suffix.lower() != PROGRESSION_FILE_EXTENSION:
            print(f"# Skipping unknown file type: {file_path}")
            continue
        try:
            programs[path_obj.stem] = program_from_progression(path_obj)
        except (OSError, ValueError) as e:
            print(f"# Error reading {file_path}: {e}")
            continue
        print(f"# Added/Updated program: {path_obj.stem}")

    for name in remove_list or []:
        if programs.pop(name, None) is not None:
            print(f"# Removed program: {name}")
        else:
            print(f"# Program to remove not found: {name}")

    with open(output_path, "w", encoding="utf-8") as f:
        f.write(render_source(programs))
    print(f"# Successfully wrote to {output_path}")
    return programs


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Manage presets.py from .progression files.")
    parser.add_argument("files", nargs="*", help="List of files to add/update.")
    parser.add_argument("-r", "--remove", nargs="+", help="List of program names to remove.")
    parser.add_argument("-o", "--output", type=Path, default=OUTPUT_PATH, help="Where to write the module.")
    args = parser.parse_args()

    generate_presets_source(args.files, args.remove, args.output)
