"""OpenAI Batch API implementation of the BatchProcessor contract."""

import json
from typing import Dict, List, Optional
from pydantic import BaseModel, ValidationError
from openai import OpenAI
from llm.providers.base import BatchProcessor, BatchNotFoundError, BatchNotReadyError
from llm.prompts.loader import PromptManager
from models.batch import Batch
from models.category import TransactionCategory
from models.transaction import Transaction
from logger import get_logger

logger = get_logger()

CUSTOM_ID_PREFIX = "transaction-"
BATCH_ENDPOINT = "/v1/chat/completions"
INPUT_FILENAME = "batch_input.jsonl"


# Pydantic models for the JSONL input and output files
class BatchRequest(BaseModel):
    """One line of the batch input file."""

    custom_id: str
    method: str = "POST"
    url: str = BATCH_ENDPOINT
    body: dict


class ResponseMessage(BaseModel):
    role: Optional[str] = None
    content: Optional[str] = None


class ResponseChoice(BaseModel):
    message: ResponseMessage


class ResponseBody(BaseModel):
    choices: List[ResponseChoice] = []


class BatchResponse(BaseModel):
    status_code: Optional[int] = None
    body: Optional[ResponseBody] = None


class BatchOutputLine(BaseModel):
    """One line of the batch output file."""

    custom_id: str
    response: Optional[BatchResponse] = None
    error: Optional[dict] = None

    @property
    def answer(self) -> Optional[str]:
        """Text of the first choice, or None if the request produced none."""
        if self.response is None or self.response.body is None:
            return None
        if not self.response.body.choices:
            return None
        return self.response.body.choices[0].message.content


def custom_id_for(transaction: Transaction) -> str:
    """Request-scoped identifier correlating an output line with a transaction."""
    return f"{CUSTOM_ID_PREFIX}{transaction.id}"


class OpenAIBatchProcessor(BatchProcessor):
    """Classifies transactions through the OpenAI Batch API.

    Each transaction becomes one chat completion request in a JSONL file.
    The file is uploaded, registered as a batch, polled until the remote
    service finishes, and the output file is downloaded and resolved.
    """

    def __init__(
        self,
        batches,
        client: OpenAI,
        model: Optional[str] = None,
        completion_window: str = "24h",
        prompt_manager: Optional[PromptManager] = None,
    ):
        """Initialize OpenAI batch processor.

        Args:
            batches: BatchService used to load and update batch records.
            client: Configured OpenAI client. Timeouts and HTTP retries are
                the client's policy.
            model: Model to use. If None, uses the prompt default.
            completion_window: Completion window hint sent on registration.
            prompt_manager: Optional PromptManager (defaults to llm/prompts).
        """
        self.batches = batches
        self.client = client
        self.model = model
        self.completion_window = completion_window
        self.prompt_manager = prompt_manager or PromptManager()

    def submit_batch(self, batch: Batch) -> Batch:
        """Upload one request per member transaction and register the batch.

        Args:
            batch: CREATED batch with claimed members.

        Returns:
            The same batch with external_id set.

        Raises:
            openai.APIError: If the upload or the registration fails.
        """
        requests = [self._build_request(t) for t in batch.transactions]
        input_file_id = self._upload_batch_input(requests)
        external_id = self._create_batch(input_file_id, batch.id)

        batch.external_id = external_id
        logger.info(
            f"Submitted batch {batch.id} ({len(requests)} transaction(s)) "
            f"with external ID {external_id}"
        )
        return batch

    def retrieve_batch_status(self, batch_id: str) -> str:
        """Poll OpenAI and mirror status and output file into the batch record."""
        batch = self.batches.find(batch_id, with_transactions=False)
        if batch is None or not batch.external_id:
            raise BatchNotFoundError(f"Batch {batch_id} not found or has no external ID")

        try:
            external = self.client.batches.retrieve(batch.external_id)
        except Exception as e:
            logger.error(f"Error retrieving batch status for {batch_id}: {e}")
            raise

        status = str(external.status)
        counts = getattr(external, "request_counts", None)
        logger.info(f"Batch {batch_id} status: {status}. Request counts: {counts}")

        batch.external_status = status
        batch.output_locator = getattr(external, "output_file_id", None) or None
        self.batches.update(batch, ["external_status", "output_locator"])

        return status

    def retrieve_results(self, batch_id: str) -> Dict[str, TransactionCategory]:
        """Download the output file and resolve a category for every member."""
        logger.info(f"Retrieving results for batch {batch_id}")

        batch = self.batches.find(batch_id)
        if batch is None:
            raise BatchNotFoundError(f"Batch with ID {batch_id} not found")
        if not batch.transactions:
            raise BatchNotFoundError(f"Batch {batch_id} has no member transactions")
        if not batch.output_locator:
            raise BatchNotReadyError(f"Batch {batch_id} has no output file ID")

        content = self.client.files.content(batch.output_locator).text
        answers = self._parse_output(content, batch_id)

        results = {}
        for transaction in batch.transactions:
            answer = answers.get(custom_id_for(transaction))
            category = TransactionCategory.resolve(answer)
            if answer is None:
                logger.warning(
                    f"Batch {batch_id}: no answer for transaction {transaction.id}, "
                    f"using {category.value}"
                )
            elif category.value.lower() != answer.strip().lower():
                logger.warning(
                    f"Batch {batch_id}: invalid category {answer!r} for transaction "
                    f"{transaction.id}, using {category.value}"
                )
            results[transaction.id] = category

        return results

    def _parse_output(self, content: str, batch_id: str) -> Dict[str, Optional[str]]:
        """Map custom_id to answer text for every parseable output line."""
        answers: Dict[str, Optional[str]] = {}
        for line_number, line in enumerate(content.splitlines(), start=1):
            line = line.strip()
            if not line:
                continue
            try:
                output = BatchOutputLine.model_validate_json(line)
            except ValidationError as e:
                logger.warning(
                    f"Batch {batch_id}: skipping unparseable output line {line_number}: {e}"
                )
                continue
            if output.error:
                logger.warning(f"Batch {batch_id}: request {output.custom_id} failed: {output.error}")
            answers[output.custom_id] = output.answer

        logger.debug(f"Batch {batch_id} answers: {answers}")
        return answers

    def _build_request(self, transaction: Transaction) -> BatchRequest:
        """Build the chat completion request for a single transaction."""
        categories = ", ".join(c.value for c in TransactionCategory.assignable())
        rendered = self.prompt_manager.render_prompt(
            "categorization",
            {
                "categories": categories,
                "fallback": TransactionCategory.MISCELLANEOUS.value,
                "description": transaction.description,
                "transaction_type": transaction.type.value,
                "amount": transaction.amount,
            },
        )
        parameters = rendered["parameters"]

        return BatchRequest(
            custom_id=custom_id_for(transaction),
            body={
                "model": self.model or parameters.get("model", "gpt-4o-mini"),
                "messages": [
                    {"role": "system", "content": rendered["system_prompt"]},
                    {"role": "user", "content": rendered["user_prompt"]},
                ],
                "temperature": parameters.get("temperature", 0),
                "max_tokens": parameters.get("max_tokens", 20),
            },
        )

    def _upload_batch_input(self, requests: List[BatchRequest]) -> str:
        """Upload the requests as a single JSONL file and return its file ID."""
        jsonl = "\n".join(json.dumps(r.model_dump()) for r in requests)

        try:
            uploaded = self.client.files.create(
                file=(INPUT_FILENAME, jsonl.encode("utf-8"), "application/jsonl"),
                purpose="batch",
            )
        except Exception as e:
            logger.error(f"Error uploading batch input file: {e}")
            raise

        logger.info(f"Uploaded batch input file with ID: {uploaded.id}")
        return uploaded.id

    def _create_batch(self, input_file_id: str, batch_id: str) -> str:
        """Register the uploaded file as a remote batch and return its ID."""
        try:
            external = self.client.batches.create(
                input_file_id=input_file_id,
                endpoint=BATCH_ENDPOINT,
                completion_window=self.completion_window,
                metadata={"batch_id": batch_id},
            )
        except Exception as e:
            logger.error(f"Error registering batch {batch_id} with file {input_file_id}: {e}")
            raise

        return external.id
