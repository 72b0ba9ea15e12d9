"""
actions.py

One record per user or system action. The reducers in reducers.py turn a
state plus an action into a new state.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from .call_tree_filters import CallTreeFilter
from .symbolication import RequestedLib
from .tables import Profile

PROFILE_SOURCES = ("addon", "web", "file")


@dataclass(frozen=True)
class ProfileSelection:
    has_selection: bool = False
    is_modifying: bool = False
    selection_start: Optional[float] = None
    selection_end: Optional[float] = None


@dataclass(frozen=True)
class ReceiveProfile:
    profile: Profile
    source: str = "file"


@dataclass(frozen=True)
class CoalescedFunctionsUpdate:
    # thread index -> symbolication.FunctionsUpdate
    functions_update_per_thread: Mapping[int, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AssignTaskTracerNames:
    address_indices: tuple
    symbol_names: tuple


@dataclass(frozen=True)
class ChangeThreadOrder:
    thread_order: tuple


@dataclass(frozen=True)
class StartSymbolicating:
    pass


@dataclass(frozen=True)
class DoneSymbolicating:
    pass


@dataclass(frozen=True)
class ChangeSelectedFuncStack:
    thread_index: int
    selected_func_stack: tuple


@dataclass(frozen=True)
class ChangeExpandedFuncStacks:
    thread_index: int
    expanded_func_stacks: tuple


@dataclass(frozen=True)
class ChangeSelectedMarker:
    thread_index: int
    selected_marker: Optional[int]


@dataclass(frozen=True)
class AddCallTreeFilter:
    thread_index: int
    filter: CallTreeFilter


@dataclass(frozen=True)
class UpdateProfileSelection:
    selection: ProfileSelection


@dataclass(frozen=True)
class ChangeTabOrder:
    tab_order: tuple


@dataclass(frozen=True)
class RequestingSymbolTable:
    requested_lib: RequestedLib


@dataclass(frozen=True)
class ReceivedSymbolTableReply:
    requested_lib: RequestedLib


# Filter settings normally carried in the URL.

@dataclass(frozen=True)
class ChangeSelectedThread:
    selected_thread: int


@dataclass(frozen=True)
class ChangeJSOnly:
    js_only: bool


@dataclass(frozen=True)
class ChangeSearchString:
    search_string: str


@dataclass(frozen=True)
class ChangeInvertCallstack:
    invert_callstack: bool


@dataclass(frozen=True)
class ChangeHidePlatformDetails:
    hide_platform_details: bool


@dataclass(frozen=True)
class AddRangeFilter:
    """Commit a range, relative to the profile's zero time."""

    start: float
    end: float


@dataclass(frozen=True)
class PopRangeFilters:
    first_popped_index: int
