import asyncio

import pytest
from assertive import (
    assert_that,
    is_exact_type,
    is_none,
    is_same_instance_as,
    raises_exception,
)

from decorated_ioc import (
    EMPTY,
    CannotResolveError,
    CircularDependencyError,
    Container,
    DuplicateRegistrationError,
    Lifespan,
)


class A:
    pass


class B:
    def __init__(self, a: A):
        self.a = a


@pytest.mark.asyncio
async def test_factory_registration_resolves_dependencies_by_identifier():
    container = Container()
    container.register_factory("b", B, ["a"])
    container.register_factory("a", A)

    b = await container.get_dep("b").inject()

    assert_that(b).matches(is_exact_type(B))
    assert_that(b.a).matches(is_exact_type(A))


@pytest.mark.asyncio
async def test_instance_registration_returns_the_same_value():
    settings = {"debug": True}
    container = Container()
    container.register_instance("settings", settings)

    value = await container.get_dep("settings").inject()

    assert_that(value).matches(is_same_instance_as(settings))


@pytest.mark.asyncio
async def test_async_factory_is_awaited():
    async def make_a():
        await asyncio.sleep(0)
        return A()

    container = Container()
    container.register_factory(A, make_a)

    a = await container.get_dep(A).inject()

    assert_that(a).matches(is_exact_type(A))


@pytest.mark.asyncio
async def test_singleton_is_shared_between_injections():
    container = Container()
    container.register_factory(A, A, lifespan=Lifespan.singleton)

    a1 = await container.get_dep(A).inject()
    a2 = await container.get_dep(A).inject()

    assert_that(a1).matches(is_same_instance_as(a2))


@pytest.mark.asyncio
async def test_transient_is_built_on_every_resolution():
    container = Container()
    container.register_factory(A, A, lifespan=Lifespan.transient)

    a1 = await container.get_dep(A).inject()
    a2 = await container.get_dep(A).inject()

    assert_that(a1 is a2).matches(False)


@pytest.mark.asyncio
async def test_once_per_graph_is_shared_within_one_injection_only():
    class Pair:
        def __init__(self, left: A, right: A):
            self.left = left
            self.right = right

    container = Container()
    container.register_factory(A, A, lifespan=Lifespan.once_per_graph)
    container.register_factory(Pair, Pair, [A, A], lifespan=Lifespan.transient)

    pair1 = await container.get_dep(Pair).inject()
    pair2 = await container.get_dep(Pair).inject()

    assert_that(pair1.left).matches(is_same_instance_as(pair1.right))
    assert_that(pair1.left is pair2.left).matches(False)


@pytest.mark.asyncio
async def test_container_lifespan_is_the_default_for_registrations():
    container = Container(lifespan=Lifespan.transient)
    container.register_factory(A, A)

    a1 = await container.get_dep(A).inject()
    a2 = await container.get_dep(A).inject()

    assert_that(a1 is a2).matches(False)


@pytest.mark.asyncio
async def test_concurrent_resolutions_of_a_singleton_build_it_once():
    built = []

    async def make_a():
        await asyncio.sleep(0)
        built.append(1)
        return A()

    container = Container()
    container.register_factory(A, make_a)

    a1, a2 = await asyncio.gather(container.get_dep(A).inject(), container.get_dep(A).inject())

    assert_that(built).matches([1])
    assert_that(a1).matches(is_same_instance_as(a2))


def test_unregistered_identifier_has_no_dependency():
    container = Container()

    assert_that(container.get_dep("missing")).matches(is_none())
    assert_that(container.has_dep("missing")).matches(False)


def test_dependency_is_not_injected_before_inject_is_awaited():
    container = Container()
    container.register_factory(A, A)

    dependency = container.get_dep(A)

    assert_that(dependency.injected).matches(is_same_instance_as(EMPTY))
    assert_that(dependency.is_injected).matches(False)


@pytest.mark.asyncio
async def test_injected_exposes_the_resolved_value():
    container = Container()
    container.register_factory(A, A)
    dependency = container.get_dep(A)

    a = await dependency.inject()

    assert_that(dependency.injected).matches(is_same_instance_as(a))
    assert_that(dependency.is_injected).matches(True)


def test_registering_an_identifier_twice_fails():
    container = Container(name="duplicates")
    container.register_factory(A, A)

    with raises_exception(DuplicateRegistrationError):
        container.register_instance(A, A())


@pytest.mark.asyncio
async def test_missing_dependency_reports_the_dependency_chain():
    container = Container()
    container.register_factory("b", B, ["a"])

    with pytest.raises(CannotResolveError) as ex_info:
        await container.get_dep("b").inject()

    assert_that(ex_info.value.identifier).matches("a")
    assert_that(ex_info.value.dependants).matches(["b"])
    assert_that("Failed to resolve 'b' could not find 'a'" in str(ex_info.value)).matches(True)


@pytest.mark.asyncio
async def test_circular_dependency_is_detected():
    container = Container()
    container.register_factory("first", lambda second: second, ["second"])
    container.register_factory("second", lambda first: first, ["first"])

    with raises_exception(CircularDependencyError):
        await container.get_dep("first").inject()


@pytest.mark.asyncio
async def test_failed_singleton_is_not_cached():
    attempts = []

    def make_a():
        attempts.append(1)
        if len(attempts) == 1:
            raise RuntimeError("first attempt fails")
        return A()

    container = Container()
    container.register_factory(A, make_a)

    with raises_exception(RuntimeError):
        await container.get_dep(A).inject()

    a = await container.get_dep(A).inject()

    assert_that(a).matches(is_exact_type(A))
    assert_that(attempts).matches([1, 1])


@pytest.mark.asyncio
async def test_concurrent_shared_builds_waiting_on_each_other_are_circular():
    container = Container()
    container.register_factory("x", lambda y: y, ["y"])
    container.register_factory("y", lambda x: x, ["x"])

    async def make_pair():
        return await asyncio.gather(container.resolve_in_graph("x"), container.resolve_in_graph("y"))

    container.register_factory("pair", make_pair)

    with raises_exception(CircularDependencyError):
        await asyncio.wait_for(container.get_dep("pair").inject(), timeout=1)


@pytest.mark.asyncio
async def test_resolve_in_graph_shares_once_per_graph_values_with_the_current_build():
    container = Container()
    container.register_factory(A, A, lifespan=Lifespan.once_per_graph)

    async def make_pair(left):
        right = await container.resolve_in_graph(A)
        return left, right

    container.register_factory("pair", make_pair, [A], lifespan=Lifespan.transient)

    left, right = await container.get_dep("pair").inject()

    assert_that(left).matches(is_same_instance_as(right))
