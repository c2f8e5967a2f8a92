import json

import pytest

from codequest_backend.curriculum import loader
from codequest_backend.curriculum.loader import CurriculumLoadError, get_curriculum, load_curriculum


def test_bundled_curriculum_loads():
    curriculum = load_curriculum()
    assert curriculum.version
    assert curriculum.chapters

    first_lesson = curriculum.lesson(0, 0)
    assert first_lesson.name.startswith("Arrayville")
    assert curriculum.coding_stage_indices(0, 0) == [1, 2, 4, 5]

    first_stage = curriculum.coding_stage(0, 0, 0)
    assert first_stage.testCases[0].input == [[1, 2, 3, 4, 5]]
    assert first_stage.testCases[0].expectedOutput == 1


def test_bundled_curriculum_has_text_only_lesson():
    curriculum = load_curriculum()
    assert curriculum.coding_stage_count(1, 0) == 0


def test_load_from_path(tmp_path):
    path = tmp_path / "curriculum.json"
    path.write_text(
        json.dumps(
            {
                "version": "custom",
                "chapters": [
                    {
                        "title": "Only",
                        "description": "",
                        "imagePath": "",
                        "details": "",
                        "lessons": [{"name": "Lone", "description": "", "icon": "", "stages": []}],
                    }
                ],
            }
        )
    )
    curriculum = load_curriculum(path)
    assert curriculum.version == "custom"
    assert curriculum.coding_stage_count(0, 0) == 0


def test_missing_file(tmp_path):
    with pytest.raises(CurriculumLoadError, match="Unable to read"):
        load_curriculum(tmp_path / "nope.json")


def test_invalid_json(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json")
    with pytest.raises(CurriculumLoadError, match="not valid JSON"):
        load_curriculum(str(path))


def test_invalid_content(tmp_path):
    path = tmp_path / "invalid.json"
    path.write_text(json.dumps({"chapters": "nope"}))
    with pytest.raises(CurriculumLoadError, match="failed validation"):
        load_curriculum(path)


def test_get_curriculum_is_cached(monkeypatch):
    monkeypatch.delenv("CURRICULUM_PATH", raising=False)
    loader._load_cached.cache_clear()
    assert get_curriculum() is get_curriculum()


def test_get_curriculum_honours_env(monkeypatch, tmp_path):
    path = tmp_path / "env.json"
    path.write_text(json.dumps({"version": "from-env", "chapters": []}))
    monkeypatch.setenv("CURRICULUM_PATH", str(path))
    loader._load_cached.cache_clear()
    try:
        assert get_curriculum().version == "from-env"
    finally:
        loader._load_cached.cache_clear()
