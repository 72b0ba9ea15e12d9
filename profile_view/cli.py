#!/usr/bin/env python3
"""
cli.py

Command-line interface for exploring sampled profiles: call trees, flame
chart rows, jank and tracing markers, and folded-stack export.
"""
import click
from rich import print
from rich.tree import Tree

from . import actions
from .call_tree_filters import PostfixCallTreeFilter, PrefixCallTreeFilter, parse_func_path
from .config import load_settings
from .errors import ProfileViewError
from .exporters import speedscope
from .exporters import view_flame
from .func_stacks import get_func_array_from_func_stack
from .loader import load_profile
from .logging_setup import configure_logging
from .session import AnalysisSession


@click.group()
@click.option("--log-level", envvar="PROFILE_VIEW_LOG_LEVEL", default=None,
              help="Logging level (DEBUG, INFO, WARNING, ...)")
@click.option("--log-file", envvar="PROFILE_VIEW_LOG_FILE", default=None,
              help="Also write logs to this file")
@click.pass_context
def main(ctx, log_level, log_file):
    """
    Explore a processed profile from the terminal.
    """
    settings = load_settings()
    level = settings.log_level
    if log_level:
        level = click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False).convert(
            log_level, None, ctx).upper()
    handle = configure_logging(level=level, log_file=log_file or settings.log_file)
    ctx.call_on_close(handle.stop)
    ctx.obj = settings


def _load_session(profile_path):
    try:
        profile = load_profile(profile_path)
    except (OSError, ProfileViewError) as exc:
        click.echo(f"Could not load profile: {exc}", err=True)
        raise SystemExit(1)
    if not profile.threads:
        click.echo("The profile has no threads.", err=True)
        raise SystemExit(1)
    session = AnalysisSession()
    session.dispatch(actions.ReceiveProfile(profile, source="file"))
    return session


def _choose_thread(session, thread_index):
    threads = session.state.profile_view.profile.threads
    if thread_index is None:
        if len(threads) == 1:
            return 0
        click.echo("Available threads:")
        for idx in session.state.profile_view.view_options.thread_order:
            click.echo(f"  [{idx}] {threads[idx].name} ({threads[idx].samples.length} samples)")
        return click.prompt("Select thread", type=click.IntRange(0, len(threads) - 1))
    if not 0 <= thread_index < len(threads):
        click.echo(f"No thread {thread_index}; the profile has {len(threads)}.", err=True)
        raise SystemExit(1)
    return thread_index


def _func_path(ctx, param, value):
    """Parse a func path option, rejecting anything that is not a non-empty list of ids."""
    if value is None:
        return None
    texts = value if isinstance(value, tuple) else (value,)
    paths = []
    for text in texts:
        try:
            path = parse_func_path(text)
        except ValueError:
            raise click.BadParameter(f"{text!r} is not a comma-separated list of function ids") from None
        if not path:
            raise click.BadParameter("a func path needs at least one function id")
        paths.append(path)
    return tuple(paths) if isinstance(value, tuple) else paths[0]


def filter_options(func):
    """Options shared by every command that looks at a filtered thread."""
    options = [
        click.argument("profile_path", type=click.Path(exists=True, dir_okay=False)),
        click.option("--thread", "-t", "thread_index", type=int, default=None,
                     help="Thread index (prompted for when omitted)"),
        click.option("--search", "-s", default="", help="Keep samples matching this text"),
        click.option("--invert", is_flag=True, help="Invert call stacks"),
        click.option("--js-only", is_flag=True, help="Only show JS frames"),
        click.option("--hide-platform", is_flag=True,
                     help="Collapse native frames (flame chart only)"),
        click.option("--prefix", "prefixes", multiple=True, callback=_func_path,
                     help="Focus on calls under a func path, e.g. 0,3,7"),
        click.option("--postfix", "postfixes", multiple=True, callback=_func_path,
                     help="Focus on calls ending in a func path, leaf first"),
        click.option("--range", "range_", type=(float, float), default=None,
                     help="Start and end, in ms from the profile start"),
        click.option("--selection", type=(float, float), default=None,
                     help="Preview selection, in absolute ms"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _open_filtered(profile_path, thread_index, search, invert, js_only, hide_platform,
                   prefixes, postfixes, range_, selection):
    session = _load_session(profile_path)
    thread_index = _choose_thread(session, thread_index)
    session.dispatch(actions.ChangeSelectedThread(thread_index))
    if range_:
        session.dispatch(actions.AddRangeFilter(*range_))
    if selection:
        session.dispatch(actions.UpdateProfileSelection(actions.ProfileSelection(
            has_selection=True, selection_start=selection[0], selection_end=selection[1])))
    for path in prefixes:
        session.dispatch(actions.AddCallTreeFilter(
            thread_index, PrefixCallTreeFilter(path, js_only)))
    for path in postfixes:
        session.dispatch(actions.AddCallTreeFilter(
            thread_index, PostfixCallTreeFilter(path, js_only)))
    session.dispatch(actions.ChangeJSOnly(js_only))
    session.dispatch(actions.ChangeSearchString(search))
    session.dispatch(actions.ChangeInvertCallstack(invert))
    session.dispatch(actions.ChangeHidePlatformDetails(hide_platform))
    return session


@main.command()
@click.argument("profile_path", type=click.Path(exists=True, dir_okay=False))
def threads(profile_path):
    """List the threads of a profile."""
    session = _load_session(profile_path)
    profile = session.state.profile_view.profile
    for idx in session.state.profile_view.view_options.thread_order:
        thread = profile.threads[idx]
        click.echo(f"  [{idx}] {thread.name} ({thread.process_type}) "
                   f"{thread.samples.length} samples, {thread.markers.length} markers")


@main.command()
@filter_options
@click.option("--select", "selected", default=None, callback=_func_path,
              help="Select (and expand to) a func path, e.g. 0,3,7")
@click.option("--max-depth", type=int, default=None, help="Depth to print (default from env)")
@click.pass_obj
def calltree(settings, selected, max_depth, **kwargs):
    """Print the call tree of a thread."""
    session = _open_filtered(**kwargs)
    sel = session.selected_thread
    thread_index = session.state.url_state.selected_thread
    if selected:
        session.dispatch(actions.ChangeSelectedFuncStack(thread_index, selected))

    call_tree = sel.get_call_tree(session.state)
    labels = sel.get_call_tree_filter_labels(session.state)
    selected_func_stack = sel.get_selected_func_stack(session.state)
    tree = Tree(view_flame.root_label(call_tree, " > ".join(labels)))
    view_flame.render(
        call_tree, tree,
        max_depth=max_depth if max_depth is not None else settings.max_depth,
        selected=selected_func_stack,
        expanded=set(sel.get_expanded_func_stacks(session.state)),
    )
    print(tree)
    if selected and selected_func_stack is None:
        path_text = ",".join(str(f) for f in selected)
        click.echo(f"Selected path {path_text} is not in the filtered call tree.", err=True)


@main.command()
@filter_options
def flame(**kwargs):
    """Print flame chart rows of a thread."""
    session = _open_filtered(**kwargs)
    sel = session.selected_thread
    state = session.state
    thread = sel.get_filtered_thread_for_flame_chart(state)
    info = sel.get_func_stack_info_of_filtered_thread_for_flame_chart(state)
    rows = sel.get_stack_timing_by_depth_for_flame_chart(state)
    click.echo(f"max depth: {sel.get_func_stack_max_depth_for_flame_chart(state)}")
    for depth, row in enumerate(rows):
        boxes = []
        for start, end, func_stack in zip(row.start, row.end, row.func_stack):
            func = info.func_stack_table.func[func_stack]
            boxes.append(f"{thread.func_table.name[func]} [{start:g}-{end:g}]")
        click.echo(f"{depth:3d}: " + "  ".join(boxes))
    for row in sel.get_leaf_category_stack_timing_for_flame_chart(state):
        boxes = [
            f"{color} [{start:g}-{end:g}]"
            for start, end, color in zip(row.start, row.end, row.color)
        ]
        click.echo("leaf: " + "  ".join(boxes))


@main.command()
@click.argument("profile_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--thread", "-t", "thread_index", type=int, default=None)
def janks(profile_path, thread_index):
    """List jank instances of a thread."""
    session = _load_session(profile_path)
    thread_index = _choose_thread(session, thread_index)
    instances = session.select("get_jank_instances", thread_index)
    if not instances:
        click.echo("No jank.")
    for jank in instances:
        click.echo(f"{jank.start:.2f}ms  {jank.title}")


@main.command()
@filter_options
def markers(**kwargs):
    """List tracing markers of a thread within the range and selection."""
    session = _open_filtered(**kwargs)
    for marker in session.selected_thread.get_range_selection_filtered_tracing_markers(session.state):
        click.echo(f"{marker.start:.2f}ms  {marker.dur:.2f}ms  {marker.name}")


@main.command()
@filter_options
@click.option("--min-weight", type=float, default=0, help="Omit stacks lighter than this (ms)")
def folded(min_weight, **kwargs):
    """Export the filtered thread as folded stacks for Speedscope."""
    session = _open_filtered(**kwargs)
    state = session.state
    thread = session.selected_thread.get_range_selection_filtered_thread(state)
    interval = session.profile_selectors.get_profile_interval(state)
    for line in speedscope.folded_stacks(thread, interval, min_weight):
        click.echo(line)


@main.command()
@filter_options
@click.argument("func_stack", type=int)
def path(func_stack, **kwargs):
    """Print the func path of a call tree node, for use with --prefix/--select."""
    session = _open_filtered(**kwargs)
    info = session.selected_thread.get_func_stack_info(session.state)
    if not 0 <= func_stack < info.func_stack_table.length:
        click.echo(f"No func stack {func_stack}.", err=True)
        raise SystemExit(1)
    funcs = get_func_array_from_func_stack(func_stack, info.func_stack_table)
    click.echo(",".join(str(f) for f in funcs))


if __name__ == "__main__":
    main()
