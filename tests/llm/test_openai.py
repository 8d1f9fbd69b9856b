"""Tests for the OpenAI batch processor."""

import json

import pytest

from llm.providers.base import BatchNotFoundError, BatchNotReadyError
from llm.providers.openai import BATCH_ENDPOINT, OpenAIBatchProcessor
from models.category import TransactionCategory
from tests.helpers import FakeOpenAIClient, add_transactions


def output_line(transaction_id, content):
    """One line of an OpenAI batch output file answering with content."""
    return json.dumps(
        {
            "id": f"batch_req_{transaction_id}",
            "custom_id": f"transaction-{transaction_id}",
            "response": {
                "status_code": 200,
                "request_id": f"req_{transaction_id}",
                "body": {
                    "choices": [
                        {"index": 0, "message": {"role": "assistant", "content": content}}
                    ]
                },
            },
            "error": None,
        }
    )


@pytest.fixture
def client():
    return FakeOpenAIClient()


@pytest.fixture
def openai_processor(services, client):
    return OpenAIBatchProcessor(services.batches, client)


@pytest.fixture
def submitted_batch(services, client, openai_processor):
    """A batch of transactions 1 and 2 submitted and persisted."""
    add_transactions(services, "1", "2")
    batch = services.batches.claim_pending(10)
    openai_processor.submit_batch(batch)
    services.batches.update(batch, ["external_id"])
    return batch


class TestSubmitBatch:
    """Tests for building, uploading and registering batch input."""

    def test_one_request_per_transaction(self, services, client, openai_processor):
        """Test that the input file holds one chat completion request per member."""
        add_transactions(services, "1", "2")
        batch = services.batches.claim_pending(10)

        openai_processor.submit_batch(batch)

        [upload] = client.files.uploads
        requests = [json.loads(line) for line in upload["content"].splitlines()]
        assert [r["custom_id"] for r in requests] == ["transaction-1", "transaction-2"]
        for request in requests:
            assert request["method"] == "POST"
            assert request["url"] == BATCH_ENDPOINT
            assert request["body"]["model"] == "gpt-4o-mini"
            assert request["body"]["max_tokens"] == 20

    def test_prompts_describe_transaction_and_categories(
        self, services, client, openai_processor
    ):
        """Test that prompts list assignable categories and the transaction details."""
        add_transactions(services, "1")
        batch = services.batches.claim_pending(10)

        openai_processor.submit_batch(batch)

        request = json.loads(client.files.uploads[0]["content"])
        system, user = request["body"]["messages"]
        assert system["role"] == "system"
        assert "Groceries" in system["content"]
        assert "Miscellaneous" in system["content"]
        assert "Pending" not in system["content"]
        assert user["role"] == "user"
        assert "PURCHASE 1" in user["content"]
        assert "debit" in user["content"]
        assert "-25.0" in user["content"]

    def test_upload_and_registration_parameters(self, services, client, openai_processor):
        """Test the file upload and batch registration calls."""
        add_transactions(services, "1")
        batch = services.batches.claim_pending(10)

        result = openai_processor.submit_batch(batch)

        assert result is batch
        assert batch.external_id == "batch_ext_1"
        upload = client.files.uploads[0]
        assert upload["purpose"] == "batch"
        assert upload["filename"].endswith(".jsonl")
        assert client.batches.created == [
            {
                "input_file_id": "file-1",
                "endpoint": BATCH_ENDPOINT,
                "completion_window": "24h",
                "metadata": {"batch_id": batch.id},
            }
        ]

    def test_configured_model_overrides_prompt_default(self, services, client):
        """Test that an explicit model wins over the prompt parameters."""
        processor = OpenAIBatchProcessor(services.batches, client, model="gpt-4.1-mini")
        add_transactions(services, "1")

        processor.submit_batch(services.batches.claim_pending(10))

        request = json.loads(client.files.uploads[0]["content"])
        assert request["body"]["model"] == "gpt-4.1-mini"

    def test_submission_does_not_persist(self, services, client, openai_processor):
        """Test that persisting the external ID is left to the caller."""
        add_transactions(services, "1")
        batch = services.batches.claim_pending(10)

        openai_processor.submit_batch(batch)

        assert services.batches.find(batch.id).external_id is None

    def test_upload_failure_propagates(self, services, client, openai_processor):
        """Test that an upload error leaves the batch unregistered."""
        add_transactions(services, "1")
        batch = services.batches.claim_pending(10)
        client.files.upload_error = ConnectionError("upload failed")

        with pytest.raises(ConnectionError):
            openai_processor.submit_batch(batch)

        assert batch.external_id is None
        assert client.batches.created == []

    def test_registration_failure_propagates(self, services, client, openai_processor):
        """Test that a registration error leaves no external ID on the batch."""
        add_transactions(services, "1")
        batch = services.batches.claim_pending(10)
        client.batches.create_error = ConnectionError("registration failed")

        with pytest.raises(ConnectionError):
            openai_processor.submit_batch(batch)

        assert batch.external_id is None


class TestRetrieveBatchStatus:
    """Tests for polling the remote batch status."""

    def test_unknown_batch(self, openai_processor):
        """Test that an unknown batch ID is reported as not found."""
        with pytest.raises(BatchNotFoundError):
            openai_processor.retrieve_batch_status("missing")

    def test_batch_without_external_id(self, services, openai_processor):
        """Test that a never-registered batch is reported as not found."""
        add_transactions(services, "1")
        batch = services.batches.claim_pending(10)

        with pytest.raises(BatchNotFoundError):
            openai_processor.retrieve_batch_status(batch.id)

    def test_in_progress_status_is_mirrored(
        self, services, client, openai_processor, submitted_batch
    ):
        """Test that the raw status is returned and stored."""
        client.set_remote("batch_ext_1", "in_progress")

        status = openai_processor.retrieve_batch_status(submitted_batch.id)

        assert status == "in_progress"
        stored = services.batches.find(submitted_batch.id)
        assert stored.external_status == "in_progress"
        assert stored.output_locator is None

    def test_completed_status_stores_output_file(
        self, services, client, openai_processor, submitted_batch
    ):
        """Test that the output file ID is stored once the batch completes."""
        client.set_remote("batch_ext_1", "completed", output_file_id="file-out")

        status = openai_processor.retrieve_batch_status(submitted_batch.id)

        assert status == "completed"
        stored = services.batches.find(submitted_batch.id)
        assert stored.external_status == "completed"
        assert stored.output_locator == "file-out"


class TestRetrieveResults:
    """Tests for downloading and resolving batch output."""

    def _complete(self, client, openai_processor, batch, lines):
        client.set_remote("batch_ext_1", "completed", output_file_id="file-out")
        client.files.contents["file-out"] = "\n".join(lines) + "\n"
        openai_processor.retrieve_batch_status(batch.id)

    def test_unknown_batch(self, openai_processor):
        """Test that an unknown batch ID is reported as not found."""
        with pytest.raises(BatchNotFoundError):
            openai_processor.retrieve_results("missing")

    def test_not_ready_without_output_file(
        self, client, openai_processor, submitted_batch
    ):
        """Test that results can't be fetched before an output file exists."""
        client.set_remote("batch_ext_1", "in_progress")
        openai_processor.retrieve_batch_status(submitted_batch.id)

        with pytest.raises(BatchNotReadyError):
            openai_processor.retrieve_results(submitted_batch.id)

    def test_answers_are_matched_case_insensitively(
        self, client, openai_processor, submitted_batch
    ):
        """Test that answers resolve to categories regardless of case and spacing."""
        self._complete(
            client,
            openai_processor,
            submitted_batch,
            [output_line("1", " groceries\n"), output_line("2", "DINING OUT")],
        )

        results = openai_processor.retrieve_results(submitted_batch.id)

        assert results == {
            "1": TransactionCategory.GROCERIES,
            "2": TransactionCategory.DINING_OUT,
        }

    def test_every_member_gets_a_category(
        self, services, client, openai_processor
    ):
        """Test fallback for invalid, missing, errored and unparseable answers."""
        add_transactions(services, "1", "2", "3", "4", "5")
        batch = services.batches.claim_pending(10)
        openai_processor.submit_batch(batch)
        services.batches.update(batch, ["external_id"])
        errored = json.dumps(
            {
                "id": "batch_req_5",
                "custom_id": "transaction-5",
                "response": None,
                "error": {"code": "server_error", "message": "internal error"},
            }
        )
        self._complete(
            client,
            openai_processor,
            batch,
            [
                output_line("1", "Healthcare"),
                output_line("2", "Crypto"),
                output_line("4", "Pending"),
                errored,
                "this is not json",
                "",
            ],
        )

        results = openai_processor.retrieve_results(batch.id)

        assert set(results) == {"1", "2", "3", "4", "5"}
        assert results["1"] is TransactionCategory.HEALTHCARE
        for transaction_id in ("2", "3", "4", "5"):
            assert results[transaction_id] is TransactionCategory.MISCELLANEOUS

    def test_answers_for_other_transactions_are_ignored(
        self, client, openai_processor, submitted_batch
    ):
        """Test that output lines for non-members are not returned."""
        self._complete(
            client,
            openai_processor,
            submitted_batch,
            [output_line("1", "Housing"), output_line("99", "Shopping")],
        )

        results = openai_processor.retrieve_results(submitted_batch.id)

        assert set(results) == {"1", "2"}
        assert results["2"] is TransactionCategory.MISCELLANEOUS

    def test_completed_without_output_file_is_not_ready(
        self, services, client, openai_processor, submitted_batch
    ):
        """Test that a completed batch whose requests all errored has no results to fetch."""
        client.set_remote("batch_ext_1", "completed", output_file_id=None)

        assert openai_processor.retrieve_batch_status(submitted_batch.id) == "completed"
        with pytest.raises(BatchNotReadyError):
            openai_processor.retrieve_results(submitted_batch.id)

        assert services.batches.find(submitted_batch.id).output_locator is None
