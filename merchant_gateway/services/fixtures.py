"""Local fixture files that stand in for provider responses when offline."""
import json
from pathlib import Path
from typing import Optional, TypeVar, Union, get_origin

from pydantic import TypeAdapter, ValidationError

from merchant_gateway.config import ConfigurationError, Settings, settings
from merchant_gateway.logging import get_logger
from merchant_gateway import metrics

logger = get_logger(__name__)

T = TypeVar("T")

ORDER_CREATE_RESPONSE = "order_create_response.json"
PAYMENT_CAPTURE_RESPONSE = "payments_get_response.json"
CONFIGURATION_DETAILS = "configuration_details.json"


class FixtureStore:
    """Reads named JSON fixtures from a directory into provider record shapes."""

    def __init__(
        self,
        base_directory: Optional[Union[str, Path]] = None,
        config: Optional[Settings] = None,
    ):
        """
        Initialize the fixture store.

        Args:
            base_directory: Directory holding the fixture files.
                Defaults to the configured fixtures_directory.
            config: Settings to read the directory from (defaults to global settings)
        """
        config = config or settings
        self.base_directory = Path(base_directory or config.fixtures_directory)

    def exists(self, file_name: str) -> bool:
        """Whether a fixture with this name is present."""
        return bool(file_name) and (self.base_directory / file_name).is_file()

    def resolve(self, file_name: str) -> Path:
        """
        Locate a fixture file.

        Raises:
            ConfigurationError: If the file is not on disk
        """
        path = self.base_directory / file_name
        if not file_name or not path.is_file():
            logger.error("fixture_missing", file_name=file_name, path=str(path))
            raise ConfigurationError(f"Fixture file not found: {path}")
        return path

    def load(self, file_name: str, shape: type[T]) -> T:
        """
        Read a fixture and deserialize it into ``shape``.

        ``shape`` is a model class or ``list[Model]``. Malformed content is
        not an error: it is logged and the zero value of the shape is
        returned (an empty model, or an empty list).

        Raises:
            ConfigurationError: If the file is missing, unreadable or empty
        """
        path = self.resolve(file_name)

        try:
            raw = path.read_bytes()
        except OSError as e:
            raise ConfigurationError(f"Fixture file unreadable: {path}: {e}") from e

        if not raw.strip():
            raise ConfigurationError(f"Fixture file is empty: {path}")

        try:
            value = TypeAdapter(shape).validate_json(raw)
        except (ValidationError, json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(
                "fixture_invalid_using_zero_value",
                file_name=file_name,
                error=str(e),
            )
            metrics.record_fixture_load(file_name, valid=False)
            return zero_value(shape)

        logger.debug("fixture_loaded", file_name=file_name)
        metrics.record_fixture_load(file_name, valid=True)
        return value


def zero_value(shape: type[T]) -> T:
    """Empty instance of a record shape or a list of records."""
    if get_origin(shape) is list:
        return []
    return shape()
