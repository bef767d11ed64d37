"""Loader for JSON/YAML import and export files of plans and store instances."""

import json
from pathlib import Path
from typing import Iterable, List, Union

import yaml
from pydantic import ValidationError

from .schema import ImportFile, StoreInstance, SyncPlan
from ..errors import ConfigurationError
from ..utils.logging import get_logger


class ConfigLoader:
    """Loads and validates bulk configuration files."""

    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)

    def load_import_file(self, file_path: Union[str, Path]) -> ImportFile:
        """Load plans and instances from a JSON or YAML file.

        Args:
            file_path: Path to the import file

        Returns:
            Validated ImportFile object

        Raises:
            ConfigurationError: If the file cannot be read or validated
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise ConfigurationError(f"Import file not found: {file_path}")

        self.logger.info("Loading import file", file_path=str(file_path))

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                if file_path.suffix.lower() in ['.yaml', '.yml']:
                    data = yaml.safe_load(f)
                elif file_path.suffix.lower() == '.json':
                    data = json.load(f)
                else:
                    raise ConfigurationError(f"Unsupported file format: {file_path.suffix}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML format: {e}")
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON format: {e}")
        except OSError as e:
            raise ConfigurationError(f"Cannot read import file: {e}")

        return self.load_from_dict(data or {})

    def load_from_dict(self, data: dict) -> ImportFile:
        """Validate already-parsed import data."""
        try:
            import_file = ImportFile.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid import data: {e}")

        self.logger.info(
            "Import data validated",
            plans_count=len(import_file.plans),
            instances_count=len(import_file.instances)
        )
        return import_file

    def save_export_file(
        self,
        plans: Iterable[SyncPlan],
        instances: Iterable[StoreInstance],
        file_path: Union[str, Path],
        include_secrets: bool = False
    ):
        """Write plans and instances to a JSON or YAML file.

        Secrets are masked unless ``include_secrets`` is set.
        """
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        instance_docs = []
        for instance in instances:
            document = instance.to_document()
            if not include_secrets:
                document["secret_access_key"] = "**********"
            instance_docs.append(document)

        data = {
            "instances": instance_docs,
            "plans": [plan.to_document() for plan in plans],
        }

        try:
            with open(file_path, 'w', encoding='utf-8') as f:
                if file_path.suffix.lower() in ['.yaml', '.yml']:
                    yaml.safe_dump(data, f, default_flow_style=False, indent=2, allow_unicode=True)
                elif file_path.suffix.lower() == '.json':
                    json.dump(data, f, indent=2)
                else:
                    raise ConfigurationError(f"Unsupported format: {file_path.suffix}")
        except OSError as e:
            raise ConfigurationError(f"Failed to save export file: {e}")

        self.logger.info("Export file saved", file_path=str(file_path))

    def validate_import(self, import_file: ImportFile, known_instance_ids: Iterable[str] = ()) -> List[str]:
        """Return warnings for an import file.

        Args:
            import_file: Validated import data
            known_instance_ids: Instance ids that already exist

        Returns:
            List of validation warnings
        """
        warnings = []

        available = set(known_instance_ids) | {i.instance_id for i in import_file.instances}
        for plan in import_file.plans:
            if plan.store_instance_id not in available:
                warnings.append(f"Plan {plan.id} references unknown store instance '{plan.store_instance_id}'")
            if not Path(plan.local_dir).expanduser().exists():
                warnings.append(f"Plan {plan.id} local directory does not exist: {plan.local_dir}")

        plan_ids = [plan.id for plan in import_file.plans]
        if len(plan_ids) != len(set(plan_ids)):
            warnings.append("Duplicate plan ids found")

        if warnings:
            self.logger.warning("Import validation warnings", warnings=warnings)
        else:
            self.logger.info("Import validation passed")

        return warnings
