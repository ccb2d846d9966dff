"""Tests for event-stream framing and payload decoding."""

from __future__ import annotations

from conftest import STANDARD_PAYLOADS, USAGE, chunk_payload, sse_body, sse_record

from deepseekkit.streaming.sse import EventFrameSplitter, EventStreamDecoder, extract_data


def _dump(chunks):
    return [c.model_dump() for c in chunks]


def _decode_all(decoder: EventStreamDecoder, fragments) -> list:
    chunks = []
    for fragment in fragments:
        chunks.extend(decoder.feed(fragment))
    chunks.extend(decoder.flush())
    return chunks


class TestEventFrameSplitter:
    def test_emits_complete_records_and_keeps_partial(self):
        splitter = EventFrameSplitter()
        assert splitter.feed(b"data: a\n\ndata: b") == ["data: a"]
        assert splitter.feed(b"\n\n") == ["data: b"]
        assert splitter.flush() == []

    def test_several_records_in_one_fragment(self):
        splitter = EventFrameSplitter()
        assert splitter.feed(b"data: 1\n\ndata: 2\n\ndata: 3\n\n") == ["data: 1", "data: 2", "data: 3"]

    def test_crlf_is_normalised(self):
        splitter = EventFrameSplitter()
        assert splitter.feed(b"data: a\r\n\r\ndata: b\r\n\r\n") == ["data: a", "data: b"]

    def test_crlf_split_across_fragments(self):
        splitter = EventFrameSplitter()
        assert splitter.feed(b"data: a\r") == []
        assert splitter.feed(b"\n\r") == []
        assert splitter.feed(b"\n") == ["data: a"]

    def test_delimiter_split_across_fragments(self):
        splitter = EventFrameSplitter()
        assert splitter.feed(b"data: a\n") == []
        assert splitter.feed(b"\ndata: b\r\n") == ["data: a"]
        assert splitter.feed(b"\r\n") == ["data: b"]

    def test_large_record_fed_in_small_fragments(self):
        payload = "x" * 20000
        body = f"data: {payload}\r\n\r\ndata: end\r\n\r\n".encode()
        splitter = EventFrameSplitter()
        records = []
        for i in range(0, len(body), 3):
            records.extend(splitter.feed(body[i:i + 3]))

        assert records == [f"data: {payload}", "data: end"]
        assert splitter.flush() == []

    def test_held_carriage_return_is_flushed(self):
        splitter = EventFrameSplitter()
        assert splitter.feed(b"data: tail\r") == []
        assert splitter.flush() == ["data: tail\r"]
        assert splitter.flush() == []

    def test_multibyte_character_split_across_fragments(self):
        encoded = "data: 你好\n\n".encode("utf-8")
        splitter = EventFrameSplitter()
        # Cut inside the first three-byte character.
        assert splitter.feed(encoded[:7]) == []
        assert splitter.feed(encoded[7:]) == ["data: 你好"]

    def test_flush_returns_trailing_record_once(self):
        splitter = EventFrameSplitter()
        splitter.feed(b"data: tail")
        assert splitter.flush() == ["data: tail"]
        assert splitter.flush() == []

    def test_flush_ignores_whitespace(self):
        splitter = EventFrameSplitter()
        splitter.feed(b"\n")
        assert splitter.flush() == []

    def test_empty_fragment(self):
        assert EventFrameSplitter().feed(b"") == []


class TestExtractData:
    def test_first_data_line_wins(self):
        assert extract_data("event: message\ndata: one\ndata: two") == "one"

    def test_no_data_line(self):
        assert extract_data(": keep-alive") is None
        assert extract_data("event: ping\nid: 4") is None

    def test_prefix_requires_space(self):
        assert extract_data("data:{}") is None


class TestEventStreamDecoder:
    def test_whole_buffer_and_byte_at_a_time_agree(self):
        body = sse_body(*STANDARD_PAYLOADS)

        whole = _decode_all(EventStreamDecoder(), [body])
        single = _decode_all(EventStreamDecoder(), [body[i:i + 1] for i in range(len(body))])

        assert len(whole) == len(STANDARD_PAYLOADS)
        assert _dump(whole) == _dump(single)
        assert whole[2].choices[0].delta.content == ", wörld 你好"

    def test_done_ends_stream(self):
        decoder = EventStreamDecoder()
        body = sse_record(chunk_payload(content="x")) + b"data: [DONE]\n\n" + sse_record(chunk_payload(content="late"))

        chunks = decoder.feed(body)

        assert [c.choices[0].delta.content for c in chunks] == ["x"]
        assert decoder.done
        assert decoder.feed(sse_record(chunk_payload(content="later"))) == []
        assert decoder.flush() == []

    def test_done_with_surrounding_whitespace(self):
        decoder = EventStreamDecoder()
        assert decoder.feed(b"data:  [DONE]  \n\n") == []
        assert decoder.done

    def test_malformed_payload_is_dropped(self):
        seen = []
        decoder = EventStreamDecoder(on_malformed=lambda payload, err: seen.append(payload))
        body = sse_body(
            chunk_payload(content="a"),
            "{not json",
            chunk_payload(content="b"),
        )

        chunks = _decode_all(decoder, [body])

        assert [c.choices[0].delta.content for c in chunks] == ["a", "b"]
        assert decoder.dropped == 1
        assert seen == ["{not json"]

    def test_json_missing_required_fields_is_dropped(self):
        decoder = EventStreamDecoder()
        chunks = decoder.feed(sse_record({"choices": []}))
        assert chunks == []
        assert decoder.dropped == 1

    def test_record_without_data_yields_nothing(self):
        decoder = EventStreamDecoder()
        assert decoder.feed(b": keep-alive\n\nevent: ping\n\n") == []
        assert decoder.dropped == 0

    def test_trailing_record_without_delimiter(self):
        decoder = EventStreamDecoder()
        record = sse_record(chunk_payload(content="end")).rstrip(b"\n")
        assert decoder.feed(record) == []
        chunks = decoder.flush()
        assert [c.choices[0].delta.content for c in chunks] == ["end"]
        assert not decoder.done

    def test_usage_only_on_last_chunk(self):
        chunks = _decode_all(EventStreamDecoder(), [sse_body(*STANDARD_PAYLOADS)])

        with_usage = [c for c in chunks if c.usage is not None]
        assert with_usage == [chunks[-1]]
        assert chunks[-1].choices == []
        assert chunks[-1].usage.total_tokens == USAGE["total_tokens"]

    def test_unknown_finish_reason_is_kept(self):
        chunks = EventStreamDecoder().feed(sse_record(chunk_payload(finish_reason="something_new")))
        assert chunks[0].choices[0].finish_reason == "something_new"
