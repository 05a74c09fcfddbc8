"""Optimistic cache lifecycle: apply, confirm, reject and revalidate."""

import pytest

from coauthor_schemas import BookCreateRequest, MutationStatus
from coauthor_store import InMemoryBookRepository

from services.outline_sync.app import mutations
from services.outline_sync.app.cache import OptimisticCache

from tests.utils.books import seed_book


@pytest.fixture
def repository() -> InMemoryBookRepository:
    return InMemoryBookRepository()


@pytest.fixture
def cache(repository: InMemoryBookRepository) -> OptimisticCache:
    return OptimisticCache(seed_book(repository, ["A", "B", "C"]))


def _custom_titles(cache: OptimisticCache) -> list[str]:
    return [entry.custom_title for entry in cache.snapshot.entries]


def test_apply_is_visible_immediately(cache: OptimisticCache) -> None:
    mutation_id = cache.apply(mutations.move_entry(cache.snapshot.detail, 0, 2), label="move")

    assert _custom_titles(cache) == ["B", "C", "A"]
    assert cache.version == 1
    assert cache.status_of(mutation_id) == MutationStatus.PENDING
    assert [entry.custom_title for entry in cache.confirmed.entries] == ["A", "B", "C"]


def test_confirm_covers_earlier_mutations(cache: OptimisticCache) -> None:
    first = cache.apply(mutations.move_entry(cache.snapshot.detail, 0, 2))
    second = cache.apply(mutations.move_entry(cache.snapshot.detail, 0, 1))

    cache.confirm(second)

    assert cache.status_of(first) == MutationStatus.CONFIRMED
    assert cache.status_of(second) == MutationStatus.CONFIRMED
    assert cache.pending_ids() == []
    assert cache.confirmed is cache.snapshot


def test_reject_reverts_to_confirmed_under_new_version(cache: OptimisticCache) -> None:
    first = cache.apply(mutations.move_entry(cache.snapshot.detail, 0, 2))
    cache.confirm(first)
    second = cache.apply(mutations.add_suggestion(cache.snapshot.detail, "Vary pace"))
    third = cache.apply(mutations.delete_entry(cache.snapshot.detail, 0))

    reverted = cache.reject(second)

    assert reverted.version == 4
    assert _custom_titles(cache) == ["B", "C", "A"]
    assert cache.snapshot.suggestions == []
    assert cache.status_of(second) == MutationStatus.REJECTED
    assert cache.status_of(third) == MutationStatus.REJECTED
    assert cache.status_of(first) == MutationStatus.CONFIRMED


def test_settled_mutations_ignore_later_transitions(cache: OptimisticCache) -> None:
    mutation_id = cache.apply(mutations.move_entry(cache.snapshot.detail, 0, 1))
    cache.confirm(mutation_id)
    version = cache.version

    cache.reject(mutation_id)

    assert cache.status_of(mutation_id) == MutationStatus.CONFIRMED
    assert cache.version == version


def test_revalidate_adopts_server_truth(cache: OptimisticCache, repository: InMemoryBookRepository) -> None:
    book_id = cache.snapshot.detail.book.id
    cache.apply(mutations.move_entry(cache.snapshot.detail, 0, 2))

    snapshot = cache.revalidate(repository.get_book(book_id))

    assert _custom_titles(cache) == ["A", "B", "C"]
    assert cache.confirmed is snapshot
    assert snapshot.version == 2


def test_missing_outline_reads_as_empty(repository: InMemoryBookRepository) -> None:
    book = repository.create_book(BookCreateRequest(title="Blank"))
    cache = OptimisticCache(repository.get_book(book.id))

    assert cache.snapshot.entries == []
    assert cache.snapshot.detail.outline is not None
