"""
Unit tests for the local video store.

The store runs against a real JSON storage file in tmp_path so the
persistence round trip is exercised for real.
"""

import pytest

from showcase.core.videos.store import LocalVideoStore, build_storage_path
from showcase.infrastructure.local.storage import JsonFileStorage, LocalVideoPersistence
from showcase.infrastructure.static_config.client import ConfigFetchError
from showcase.infrastructure.storage.client import MockStorageClient, StorageError

from conftest import FailingPersistence, FlakyStorageClient, StaticSeed, run


def loaded_store(persistence, **kwargs) -> LocalVideoStore:
    store = LocalVideoStore(persistence, **kwargs)
    run(store.load())
    return store


def add_videos(store: LocalVideoStore, count: int) -> list:
    return [
        run(store.add(name=f"Video {i}", url=f"/videos/{i}.mp4"))
        for i in range(count)
    ]


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

class TestLoad:

    def test_empty_storage_loads_empty_collection(self, persistence):
        store = loaded_store(persistence)

        assert store.loaded
        assert store.video_count == 0
        assert store.error is None

    def test_round_trip_through_local_storage(self, storage_file, persistence):
        """A collection saved by one store is reloaded field-for-field by the next."""
        store = loaded_store(persistence)
        add_videos(store, 3)
        run(store.update(store.sorted_videos[1].id, {"thumbnail": "/t/1.jpg"}))

        reloaded = loaded_store(LocalVideoPersistence(JsonFileStorage(storage_file)))

        assert reloaded.sorted_videos == store.sorted_videos

    def test_round_trip_when_static_config_unreachable(self, persistence, sample_records):
        persistence.save(sample_records)
        seed = StaticSeed(error=ConfigFetchError("connection refused"))

        store = loaded_store(persistence, seed_source=seed)

        assert list(store.sorted_videos) == sample_records
        assert store.error is None

    def test_static_config_replaces_collection_and_local_storage(self, persistence, sample_records):
        persistence.save([sample_records[1].with_changes(order=0)])
        seed = StaticSeed(records=sample_records)

        store = loaded_store(persistence, seed_source=seed)

        assert list(store.videos) == sample_records
        assert persistence.load() == sample_records

    def test_empty_static_config_falls_back_to_local_storage(self, persistence, sample_records):
        persistence.save(sample_records)

        store = loaded_store(persistence, seed_source=StaticSeed(records=[]))

        assert list(store.videos) == sample_records

    def test_malformed_local_storage_is_discarded(self, storage_file):
        storage = JsonFileStorage(storage_file)
        storage.set_item("showcase-videos", "{not json")

        store = loaded_store(LocalVideoPersistence(storage))

        assert store.loaded
        assert store.video_count == 0


# ---------------------------------------------------------------------------
# Add
# ---------------------------------------------------------------------------

class TestAdd:

    def test_add_increments_count_and_assigns_order(self, persistence):
        store = loaded_store(persistence)
        add_videos(store, 2)
        before = store.video_count

        record = run(store.add(name="Third", url="/videos/3.mp4"))

        assert store.video_count == before + 1
        assert record.order == before
        assert store.get_by_id(record.id) == record

    def test_add_persists_immediately(self, persistence):
        store = loaded_store(persistence)

        record = run(store.add(name="Intro", url="/videos/intro.mp4", thumbnail="/t.jpg"))

        assert persistence.load() == [record]

    def test_add_requires_url_or_file(self, persistence):
        store = loaded_store(persistence)

        with pytest.raises(ValueError, match="url or a file"):
            run(store.add(name="Nothing"))

    def test_files_become_blob_references_without_uploader(self, persistence, video_file, thumbnail_file):
        store = loaded_store(persistence)

        record = run(store.add(name="Clip", file=video_file, thumbnail_file=thumbnail_file))

        assert record.url.startswith("blob:")
        assert record.thumbnail.startswith("blob:")
        assert store.blobs.get(record.url) == video_file

    def test_files_go_to_uploader_when_configured(self, persistence, video_file):
        uploader = MockStorageClient()
        store = loaded_store(persistence, uploader=uploader)

        record = run(store.add(name="Clip", file=video_file))

        assert record.url.startswith("mock://storage/videos/")
        assert record.url.endswith("_clip.mp4")
        assert len(uploader.object_paths) == 1

    def test_failed_upload_creates_no_record(self, persistence, video_file, thumbnail_file):
        store = loaded_store(persistence, uploader=FlakyStorageClient(fail_prefix="thumbnails/"))

        with pytest.raises(StorageError):
            run(store.add(name="Clip", file=video_file, thumbnail_file=thumbnail_file))

        assert store.video_count == 0
        assert persistence.load() == []

    def test_failed_thumbnail_upload_removes_uploaded_video(self, persistence, video_file, thumbnail_file):
        uploader = FlakyStorageClient(fail_prefix="thumbnails/")
        store = loaded_store(persistence, uploader=uploader)

        with pytest.raises(StorageError):
            run(store.add(name="Clip", file=video_file, thumbnail_file=thumbnail_file))

        assert uploader.object_paths == []

    def test_persistence_failure_leaves_memory_unchanged(self, storage_file, video_file):
        persistence = FailingPersistence(JsonFileStorage(storage_file))
        store = loaded_store(persistence)
        run(store.add(name="Kept", url="/videos/kept.mp4"))
        persistence.fail = True

        with pytest.raises(OSError):
            run(store.add(name="Lost", file=video_file))

        assert [v.name for v in store.videos] == ["Kept"]
        # the blob created for the failed add is released again
        assert len(store.blobs) == 0


# ---------------------------------------------------------------------------
# Update / Delete
# ---------------------------------------------------------------------------

class TestUpdate:

    def test_update_merges_fields(self, persistence):
        store = loaded_store(persistence)
        record = run(store.add(name="Old", url="/videos/a.mp4"))

        updated = run(store.update(record.id, {"name": "New"}))

        assert updated.name == "New"
        assert updated.url == "/videos/a.mp4"
        assert persistence.load()[0].name == "New"

    def test_update_unknown_id_is_noop(self, persistence):
        store = loaded_store(persistence)
        add_videos(store, 1)
        before = store.videos

        assert run(store.update("missing", {"name": "x"})) is None
        assert store.videos == before

    def test_update_rejects_id_changes(self, persistence):
        store = loaded_store(persistence)
        record = run(store.add(name="A", url="/a.mp4"))

        with pytest.raises(ValueError, match="id"):
            run(store.update(record.id, {"id": "other"}))

    @pytest.mark.parametrize("changes", [
        {"name": None},
        {"url": None},
        {"url": ""},
        {"order": "first"},
        {"created_at": None},
    ])
    def test_update_rejects_invalid_values(self, persistence, changes):
        store = loaded_store(persistence)
        record = run(store.add(name="A", url="/a.mp4"))

        with pytest.raises(ValueError):
            run(store.update(record.id, changes))

        assert store.get_by_id(record.id) == record
        assert persistence.load() == [record]


class TestDelete:

    def test_delete_unknown_id_leaves_collection_unchanged(self, persistence):
        store = loaded_store(persistence)
        add_videos(store, 2)
        before = store.videos

        assert not run(store.delete("does-not-exist"))
        assert store.videos == before

    def test_delete_renumbers_remaining_records(self, persistence):
        store = loaded_store(persistence)
        records = add_videos(store, 3)

        assert run(store.delete(records[0].id))

        assert [v.order for v in store.sorted_videos] == [0, 1]
        assert [v.id for v in store.sorted_videos] == [records[1].id, records[2].id]
        assert [v.order for v in persistence.load()] == [0, 1]

    def test_delete_revokes_blob_references(self, persistence, video_file, thumbnail_file):
        store = loaded_store(persistence)
        record = run(store.add(name="Clip", file=video_file, thumbnail_file=thumbnail_file))
        assert len(store.blobs) == 2

        run(store.delete(record.id))

        assert len(store.blobs) == 0


# ---------------------------------------------------------------------------
# Reorder
# ---------------------------------------------------------------------------

class TestReorder:

    @pytest.mark.parametrize("from_index,to_index", [(0, 3), (3, 0), (1, 2), (2, 2)])
    def test_reorder_keeps_order_contiguous(self, persistence, from_index, to_index):
        store = loaded_store(persistence)
        records = add_videos(store, 4)
        expected = [r.id for r in records]
        expected.insert(to_index, expected.pop(from_index))

        result = run(store.reorder(from_index, to_index))

        assert [v.id for v in result] == expected
        assert [v.order for v in store.sorted_videos] == [0, 1, 2, 3]
        assert [v.id for v in store.sorted_videos] == expected

    def test_reorder_is_persisted(self, persistence):
        store = loaded_store(persistence)
        records = add_videos(store, 3)

        run(store.reorder(2, 0))

        stored = sorted(persistence.load(), key=lambda v: v.order)
        assert [v.id for v in stored] == [records[2].id, records[0].id, records[1].id]

    def test_reorder_rejects_out_of_range(self, persistence):
        store = loaded_store(persistence)
        add_videos(store, 2)

        with pytest.raises(IndexError, match="to_index"):
            run(store.reorder(0, 5))


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------

class TestSubscribe:

    def test_subscriber_gets_current_then_new_snapshots(self, persistence):
        store = loaded_store(persistence)
        seen = []

        unsubscribe = store.subscribe(seen.append)
        run(store.add(name="A", url="/a.mp4"))
        unsubscribe()
        run(store.add(name="B", url="/b.mp4"))

        assert [s.video_count for s in seen] == [0, 1]

    def test_failing_listener_does_not_break_mutations(self, persistence):
        store = loaded_store(persistence)

        def broken(snapshot):
            raise RuntimeError("boom")

        store.subscribe(broken)
        record = run(store.add(name="A", url="/a.mp4"))

        assert store.get_by_id(record.id) == record


class TestStoragePaths:

    def test_paths_are_prefixed_with_timestamp(self):
        assert build_storage_path("videos", "clip.mp4", timestamp_ms=1714557600000) == (
            "videos/1714557600000_clip.mp4"
        )

    def test_paths_drop_directories(self):
        assert build_storage_path("thumbnails", "../../etc/x.jpg", timestamp_ms=1) == "thumbnails/1_x.jpg"
