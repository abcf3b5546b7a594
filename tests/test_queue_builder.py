from datetime import date

import pytest

from voicer.processing import ArtifactWriter, ItemStatus, QueueBuilder
from voicer.processing.queue_builder import coerce_dialogues, coerce_speaker_mapping


@pytest.mark.asyncio
async def test_build_splits_long_lines_in_order(tmp_path, dialogues, speaker_mapping):
    builder = QueueBuilder(ArtifactWriter(tmp_path))

    queue, episode_dir = await builder.build(
        dialogues, speaker_mapping, {"name": "Pilot Episode"}
    )

    assert [item.id for item in queue] == [
        "001_NARRATOR",
        "002a_HERO",
        "002b_HERO",
        "003_NARRATOR",
    ]
    hero_items = [item for item in queue if item.speaker == "HERO"]
    assert [item.original_index for item in hero_items] == [1, 1]
    assert [item.chunk_index for item in hero_items] == [0, 1]
    assert all(item.total_chunks == 2 for item in hero_items)
    assert all(item.status is ItemStatus.PENDING and item.attempts == 0 for item in queue)
    assert queue[0].voice_id == "voice-narrator"
    assert queue[0].voice_settings == {"stability": 0.5}
    assert episode_dir.is_dir()
    assert episode_dir.name.startswith("Pilot_Episode_")


@pytest.mark.asyncio
async def test_unmapped_speakers_are_skipped(tmp_path, speaker_mapping, caplog):
    builder = QueueBuilder(ArtifactWriter(tmp_path))
    lines = [
        {"speaker": "GOBLIN", "text": "Grr."},
        {"speaker": "NARRATOR", "text": "The goblin growls."},
    ]

    with caplog.at_level("WARNING"):
        queue, _ = await builder.build(lines, speaker_mapping, None)

    assert [item.id for item in queue] == ["002_NARRATOR"]
    assert "GOBLIN" in caplog.text


def test_build_items_prefers_cleaned_text_and_skips_blank(tmp_path, speaker_mapping):
    builder = QueueBuilder(ArtifactWriter(tmp_path), max_chunk_chars=50)
    lines = coerce_dialogues(
        [
            {"speaker": "NARRATOR", "text": "(softly) Hello.", "cleanedText": "Hello."},
            {"speaker": "HERO", "text": "   "},
        ]
    )

    queue = builder.build_items(lines, coerce_speaker_mapping(speaker_mapping))

    assert [item.text for item in queue] == ["Hello."]


def test_queue_length_is_bounded_by_chunk_budget(tmp_path, dialogues, speaker_mapping):
    builder = QueueBuilder(ArtifactWriter(tmp_path), max_chunk_chars=1000)
    lines = coerce_dialogues(dialogues)

    queue = builder.build_items(lines, coerce_speaker_mapping(speaker_mapping))

    bound = sum(-(-len(line.text) // 1000) for line in lines)
    assert len(queue) <= bound


@pytest.mark.asyncio
async def test_episode_dir_collision_gets_suffix(tmp_path):
    writer = ArtifactWriter(tmp_path)
    today = date(2024, 1, 2)

    first = await writer.create_episode_dir("Pilot", today=today)
    second = await writer.create_episode_dir("Pilot", today=today)

    assert first.name == "Pilot_2024-01-02"
    assert second.name == "Pilot_2024-01-02_2"
