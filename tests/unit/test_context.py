"""Tests for per-profile build contexts."""

from dataclasses import replace

from transbuild.core.context import BuildContext, ContextRegistry
from transbuild.core.manifest import Profile


def test_registry_creates_one_context_per_profile(project) -> None:
    registry = ContextRegistry()
    default = project.manifest.profile("default")

    first = registry.get(project, default)

    assert registry.get(project, default) is first
    assert registry.peek(project, "default") is first
    assert registry.get(project, Profile(name="other")) is not first
    assert len(registry) == 2


def test_context_takes_watch_mode_from_profile(project) -> None:
    context = ContextRegistry().get(project, Profile(name="live", watch_mode=True))

    assert context.watch_mode
    assert context.compiler is None
    assert context.source_records == {}


def test_changed_profile_options_replace_the_context(project, factory) -> None:
    registry = ContextRegistry()
    profile = Profile(name="web", watch_mode=True)
    old = registry.get(project, profile)
    old.compiler = factory.create(None)
    old.compiler.set_watch_mode(True)

    new = registry.get(project, replace(profile, include_filter="app/.*"))

    assert new is not old
    assert old.compiler is None
    assert factory.created[0].watch_mode is False


def test_discard_disposes_only_that_project(make_project) -> None:
    first = make_project(name="one")
    second = make_project(name="two")
    registry = ContextRegistry()
    registry.get(first, Profile())
    kept = registry.get(second, Profile())

    registry.discard(first)

    assert list(registry) == [kept]
    assert registry.peek(first, "default") is None


def test_record_without_compiler_is_a_no_op(project, write_source) -> None:
    context = BuildContext(project=project, profile=Profile())

    context.record([write_source(project.root, "src/A.java")])

    assert context.source_records == {}
