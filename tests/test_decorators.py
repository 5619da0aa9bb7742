from typing import Annotated

import pytest
from assertive import assert_that, is_exact_type, is_same_instance_as

import decorated_ioc
from decorated_ioc import (
    Inject,
    Injector,
    get_default_injector,
    inject,
    injectable_factory,
    register,
    register_param,
    set_default_injector,
)


@pytest.fixture
def injector():
    fresh = Injector()
    previous = set_default_injector(fresh)
    yield fresh
    set_default_injector(previous)


def test_set_default_injector_replaces_the_module_injector(injector):
    assert_that(get_default_injector()).matches(is_same_instance_as(injector))


@pytest.mark.asyncio
async def test_register_and_injectable_factory_use_the_default_injector(injector):
    @register()
    class Database:
        pass

    @register()
    @register_param(1, "db-url")
    class Repository:
        def __init__(self, database: Database, url: str):
            self.database = database
            self.url = url

    @register("db-url")
    def database_url() -> str:
        return "sqlite://"

    repository = await injectable_factory()(Repository).inject()

    assert_that(repository.database).matches(is_exact_type(Database))
    assert_that(repository.url).matches("sqlite://")


@pytest.mark.asyncio
async def test_inject_completes_when_pending_work_runs(injector):
    created = []

    class Cache:
        pass

    @register()
    def make_cache() -> Cache:
        return Cache()

    @inject(name="app")
    class App:
        cache: Annotated[Cache, Inject()]

        def __init__(self):
            created.append(self)

    await decorated_ioc.run_pending()

    assert_that(created[0]).matches(is_exact_type(App))
    assert_that(created[0].cache).matches(is_exact_type(Cache))
