"""Tool capability bundles and the registry agents resolve inbuilt tools from."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Callable

from pydantic import BaseModel, RootModel

from agent_runtime.core.context import RunContext
from agent_runtime.core.errors import ConfigurationError
from agent_runtime.core.models import ToolDescriptor
from agent_runtime.tools import builtin
from agent_runtime.tools.schemas import (
    GetCurrentTimeInput,
    GetCurrentTimeOutput,
    GetLatestNewsInput,
    GetLatestNewsOutput,
    GetWeatherInput,
    GetWeatherOutput,
)


@dataclass(frozen=True)
class ToolSpec:
    """Everything needed to advertise, decode, run and encode one tool."""

    name: str
    description: str
    input_model: type[BaseModel]
    output_model: type[BaseModel]
    fn: Callable[[RunContext, Any], Any]

    def __post_init__(self) -> None:
        for label, model in (("input", self.input_model), ("output", self.output_model)):
            if not (isinstance(model, type) and issubclass(model, BaseModel)):
                raise ConfigurationError(
                    f"tool {self.name}: {label} model must be a pydantic model"
                )
        if issubclass(self.input_model, RootModel):
            raise ConfigurationError(
                f"tool {self.name}: input model must be a plain record, not a root model"
            )

    def schema(self) -> dict[str, Any]:
        return self.input_model.model_json_schema()

    def descriptor(self) -> ToolDescriptor:
        return ToolDescriptor(
            name=self.name,
            description=self.description,
            parameters=self.schema(),
            inbuilt=True,
        )

    def decode(self, raw: str) -> BaseModel:
        return self.input_model.model_validate_json(raw or "{}")

    def invoke(self, ctx: RunContext, payload: BaseModel) -> BaseModel | None:
        output = self.fn(ctx, payload)
        if output is None:
            return None
        return self.output_model.model_validate(output)

    def encode(self, output: BaseModel) -> str:
        return output.model_dump_json()


class ToolRegistry:
    """Name-keyed inbuilt tools, built once and shared by every agent."""

    def __init__(self, specs: Iterable[ToolSpec] = ()) -> None:
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs:
            self.register(spec)

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._specs:
            raise ConfigurationError(f"tool {spec.name} already registered")
        self._specs[spec.name] = spec

    def get(self, name: str) -> ToolSpec | None:
        return self._specs.get(name)

    def names(self) -> list[str]:
        return sorted(self._specs)

    def descriptors(self) -> list[ToolDescriptor]:
        return [self._specs[name].descriptor() for name in self.names()]

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    def __len__(self) -> int:
        return len(self._specs)


def build_registry() -> ToolRegistry:
    return ToolRegistry(
        [
            ToolSpec(
                name="get_current_time",
                description="get current time",
                input_model=GetCurrentTimeInput,
                output_model=GetCurrentTimeOutput,
                fn=builtin.get_current_time,
            ),
            ToolSpec(
                name="get_weather",
                description="get current weather",
                input_model=GetWeatherInput,
                output_model=GetWeatherOutput,
                fn=builtin.get_weather,
            ),
            ToolSpec(
                name="get_latest_news",
                description="get latest news",
                input_model=GetLatestNewsInput,
                output_model=GetLatestNewsOutput,
                fn=builtin.get_latest_news,
            ),
        ]
    )


def list_tools() -> list[str]:
    return build_registry().names()
