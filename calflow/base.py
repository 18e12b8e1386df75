import logging
import os
from abc import ABC
from pathlib import Path
from typing import Any, Dict

import pydantic
import yaml

import calflow.util
from calflow.settings import settings
from calflow.types import ImportString


class _BaseConfig(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="ignore", from_attributes=True)

    @classmethod
    def model_validate(cls, obj, *, strict=None, from_attributes=None, context=None):
        """Like ``pydantic.BaseModel.model_validate()`` but also accepts None (all defaults), a yaml file path, a json
        string, and components or descriptors, from which their config is taken.
        """
        if obj is None:
            return cls()
        if isinstance(obj, os.PathLike):
            return cls.load(obj)
        if isinstance(obj, (str, bytes, bytearray)):
            return cls.model_validate_json(obj, strict=strict, context=context)
        if isinstance(obj, (ConfigDescriptor, BaseInterface)):
            obj = obj.config
        return super().model_validate(obj, strict=strict, from_attributes=from_attributes, context=context)

    @classmethod
    def load(cls, file_path: Path, encoding: str | None = None):
        """Read a yaml config file."""
        with open(file_path, encoding=encoding) as f:
            return cls.model_validate(yaml.safe_load(f))

    def save(self, file_path: Path, encoding: str | None = None) -> Path:
        """Write config as yaml, creating parent directories as needed."""
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, "w", encoding=encoding) as f:
            yaml.dump(self.model_dump(mode="json"), f)
        return file_path

    def shallow_model_dump(self) -> dict:
        """Field values as a dict, leaving nested models as they are.

        ``model_dump()`` would turn ``ConfigDescriptor`` fields back into plain dicts, after which they could no
        longer be instantiated with ``ConfigDescriptor.create()``.
        """
        return dict(self)


class BaseConfig(_BaseConfig):
    name: str | None = None


class ConfigDescriptor(_BaseConfig):
    """A component class, by fully qualified name, along with the config to instantiate it with."""

    classinfo: ImportString
    config: dict = {}

    @classmethod
    def model_validate(cls, obj, *args, **kwargs):
        """Like ``pydantic.BaseModel.model_validate()`` but also accepts ``BaseInterface`` classes (described with
        their default config) and instances (described with their current config).
        """
        if isinstance(obj, ConfigDescriptor):
            return obj
        if isinstance(obj, type) and issubclass(obj, BaseInterface):
            obj = dict(classinfo=calflow.util.fully_qualified_name(obj), config=obj.Config().model_dump(mode="json"))
        elif isinstance(obj, BaseInterface):
            obj = dict(classinfo=obj.classinfo, config=obj.config)
        return super().model_validate(obj, *args, **kwargs)

    def create(self, update: Dict[str, Any] | None = None, non_config_kwargs: Dict[str, Any] | None = None, **kwargs):
        """Instantiate ``classinfo`` from ``config``.

        Args:
            update (:obj:`dict`): Overrides for ``config``, validated along with it.
            non_config_kwargs (:obj:`dict`): Extra keyword arguments passed as is to ``classinfo``.
            **kwargs: Further overrides, applied after ``update``.
        """
        config = self.classinfo.Config.model_validate({**self.config, **(update or {}), **kwargs})
        return self.classinfo(**config.shallow_model_dump(), **(non_config_kwargs or {}))


class BaseInterface(ABC):
    """Base class for configurable components.

    Instances are created either through ``cls.create(config)``, where ``config`` is validated against
    ``cls.Config``, or through plain ``cls(**kwargs)``. In the latter case the base ``__init__`` introspects
    ``cls.Config`` and assigns an instance attribute for every config field, taken from ``kwargs`` or from the field
    default. Attributes assigned before calling ``super().__init__()`` are left untouched. Config values that are
    ``ConfigDescriptor``s, directly or within a dict, are then instantiated.

    Every instance gets a logger named ``<DEFAULT_LOGGER>.<name>``.
    """

    class Config(BaseConfig): ...

    @classmethod
    def create(cls, config: ConfigDescriptor | dict | str | None = None):
        """Create an instance from a config of ``cls``, or from a descriptor of ``cls`` or one of its subclasses."""
        if isinstance(config, dict) and "classinfo" in config:
            config = ConfigDescriptor.model_validate(config)

        if isinstance(config, ConfigDescriptor):
            if not issubclass(config.classinfo, cls):
                raise TypeError(f"'{config.classinfo.__qualname__}' is not a subclass of '{cls.__qualname__}'")
            return config.create()

        return cls(**cls.Config.model_validate(config).shallow_model_dump())

    def __init__(self, *args, name: str = None, auto_config=True, **kwargs):
        self.name = name or self.__class__.__name__
        self.logger = logging.getLogger(f"{settings.DEFAULT_LOGGER}.{self.name}")

        if auto_config:
            # Consumes config fields from kwargs, what remains is passed on to nested components.
            self.auto_assign_attrs_from_config(kwargs)

        init_and_set_vars_from_descriptors(self, **kwargs)

    def auto_assign_attrs_from_config(self, kwargs):
        """Assign an instance attribute for each field of ``self.Config`` not yet assigned.

        Values are popped from ``kwargs`` or else taken from field defaults.
        """
        for field_name, field in self.Config.model_fields.items():
            if field_name in vars(self):
                continue
            if field_name in kwargs:
                # Not validated, use ``cls.create()`` for that.
                value = kwargs.pop(field_name)
            elif field.is_required():
                raise KeyError(f"The field '{field_name}' is required but was missing upon instantiation.")
            else:
                value = field.get_default(call_default_factory=True)
            setattr(self, field_name, value)

    @property
    def config(self) -> dict:
        """Current config as a json-compatible dict."""
        return self.config_model.model_dump(mode="json")

    @property
    def config_model(self) -> BaseConfig:
        """Current config, populated from instance attributes."""
        return self.Config.model_validate(vars(self))

    @property
    def classinfo(self) -> str:
        return calflow.util.fully_qualified_name(self.__class__)


def init_and_set_vars_from_descriptors(obj, **non_config_kwargs):
    """Replace ``ConfigDescriptor`` vars of ``obj``, and those held in dict vars, with the instances they describe."""
    for key, value in list(vars(obj).items()):
        if isinstance(value, ConfigDescriptor):
            setattr(obj, key, value.create(non_config_kwargs=non_config_kwargs))
        elif isinstance(value, dict) and any(isinstance(v, ConfigDescriptor) for v in value.values()):
            setattr(
                obj,
                key,
                {
                    k: v.create(non_config_kwargs=non_config_kwargs) if isinstance(v, ConfigDescriptor) else v
                    for k, v in value.items()
                },
            )


def to_descriptor(value):
    """Convert component classes and instances to ``ConfigDescriptor``, for use in ``mode="before"`` validators."""
    if isinstance(value, BaseInterface) or (isinstance(value, type) and issubclass(value, BaseInterface)):
        return ConfigDescriptor.model_validate(value)
    return value
