import functools
import json
import logging
import typing
from pathlib import Path

from pydantic import ValidationError

from codequest_backend.curriculum.curriculum import Curriculum
from codequest_backend.models.curriculum_models import CurriculumModel
from codequest_backend.utils.aws_env_vars import get_curriculum_path

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)

BUNDLED_CURRICULUM_PATH = Path(__file__).resolve().parent.parent / "content" / "curriculum.json"


class CurriculumLoadError(ValueError):
    pass


def load_curriculum(path: typing.Optional[typing.Union[str, Path]] = None) -> Curriculum:
    """
    Reads and validates curriculum content from a JSON file.

    :param path: JSON file to read; defaults to the bundled curriculum.
    :raises CurriculumLoadError: If the file is missing, not JSON, or fails validation.
    """
    curriculum_path = Path(path) if path else BUNDLED_CURRICULUM_PATH
    _LOGGER.info(f"Loading curriculum from {curriculum_path}")
    try:
        raw_content = curriculum_path.read_text(encoding="utf-8")
        model = CurriculumModel.model_validate(json.loads(raw_content))
    except OSError as e:
        _LOGGER.error(f"Unable to read curriculum file {curriculum_path}: {e}")
        raise CurriculumLoadError(f"Unable to read curriculum file: {curriculum_path}") from e
    except json.JSONDecodeError as e:
        _LOGGER.error(f"Curriculum file {curriculum_path} is not valid JSON: {e}")
        raise CurriculumLoadError(f"Curriculum file is not valid JSON: {curriculum_path}") from e
    except ValidationError as ve:
        _LOGGER.error(f"Curriculum file {curriculum_path} failed validation: {ve}")
        raise CurriculumLoadError(f"Curriculum file failed validation: {curriculum_path}") from ve

    _LOGGER.info(f"Loaded curriculum version {model.version} with {len(model.chapters)} chapter(s).")
    return Curriculum(model)


@functools.lru_cache(maxsize=None)
def _load_cached(path: typing.Optional[str]) -> Curriculum:
    return load_curriculum(path)


def get_curriculum() -> Curriculum:
    """
    Curriculum for this process, honouring CURRICULUM_PATH. Content is loaded once per path and reused
    across warm Lambda invocations.
    """
    return _load_cached(get_curriculum_path())
