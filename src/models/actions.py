"""
Structured build commands.

An ``ActionList`` is the ordered command sequence produced either by the
extraction service (free-text builds) or by a completed wizard session. Each
action kind is its own model, tagged by ``type`` with the same tags the
extraction prompt asks for, and ``Action`` is the closed union over them.
"""

from typing import Annotated, List, Literal, Optional, Tuple, Union, get_args

from pydantic import BaseModel, Field, validator


class AgencySpec(BaseModel):
    """Description of one agency to provision."""
    name: str
    emoji: Optional[str] = None
    is_main: bool = False

    @validator("name")
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Agency name must not be empty")
        return v.strip()

    @validator("emoji")
    def blank_emoji_is_none(cls, v):
        if v is not None and not v.strip():
            return None
        return v


class WipeAction(BaseModel):
    type: Literal["WIPE"] = "WIPE"

    def describe(self) -> str:
        return "Wipe structure"


class BuildMainStructureAction(BaseModel):
    type: Literal["CREATE_MAIN_STRUCTURE"] = "CREATE_MAIN_STRUCTURE"

    def describe(self) -> str:
        return "Build main structure"


class InitializeAgenciesAction(BaseModel):
    type: Literal["INITIALIZE"] = "INITIALIZE"
    agencies: List[AgencySpec] = Field(default_factory=list)

    def describe(self) -> str:
        names = ", ".join(spec.name for spec in self.agencies) or "none"
        return f"Initialize agencies ({names})"


class MapEdgeAction(BaseModel):
    """Place ``downline`` under ``upline``. Both are agency names, resolved at execution time."""
    type: Literal["MAP"] = "MAP"
    downline: str
    upline: str

    @validator("downline", "upline")
    def validate_names(cls, v):
        if not v or not v.strip():
            raise ValueError("Agency name must not be empty")
        return v.strip()

    def describe(self) -> str:
        return f"Map {self.downline} -> {self.upline}"


class DeployOnboardingAction(BaseModel):
    type: Literal["DEPLOY_ONBOARDING"] = "DEPLOY_ONBOARDING"

    def describe(self) -> str:
        return "Deploy onboarding portal"


Action = Annotated[
    Union[
        WipeAction,
        BuildMainStructureAction,
        InitializeAgenciesAction,
        MapEdgeAction,
        DeployOnboardingAction,
    ],
    Field(discriminator="type"),
]

# Every concrete action class; the interpreter checks its handler table against this.
ACTION_TYPES: Tuple[type, ...] = get_args(get_args(Action)[0])


class ActionList(BaseModel):
    """Ordered build commands, executed exactly in the order given."""
    actions: List[Action] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.actions)

    def count(self, action_type: type) -> int:
        return sum(1 for action in self.actions if isinstance(action, action_type))
