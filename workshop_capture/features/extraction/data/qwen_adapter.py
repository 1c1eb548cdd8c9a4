import json
import re
import logging
import torch
from typing import List, Tuple
from transformers import AutoModelForCausalLM, AutoTokenizer, BitsAndBytesConfig
from workshop_capture.core.common.enums import Confidence, Importance
from workshop_capture.core.model_lifecycle.orchestrator import ModelOrchestrator, ModelType
from workshop_capture.features.checklist.domain.interfaces import IChecklistGenerator
from workshop_capture.features.checklist.domain.models import (
    ChecklistDefinition, ChecklistEntry, GeneratedChecklist, QuestionContext
)
from ..domain.interfaces import IChecklistExtractor
from ..domain.models import EntryEvidence, ExtractedFinding, ExtractionResult

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def parse_confidence(value) -> Confidence:
    try:
        return Confidence(str(value).strip().lower())
    except ValueError:
        return Confidence.MEDIUM


def parse_importance(value) -> Importance:
    normalised = str(value).strip().lower().replace("_", "-").replace(" ", "-")
    try:
        return Importance(normalised)
    except ValueError:
        # Unknown labels are treated as blocking rather than silently optional.
        return Importance.IMPORTANT


def load_json_object(response: str) -> dict:
    """
    Pulls the JSON object out of a model reply that may carry code fences or chatter.
    Raises ValueError when there is nothing parseable.
    """
    cleaned = response.replace("```json", "").replace("```", "").strip()
    match = _JSON_OBJECT.search(cleaned)
    try:
        data = json.loads(match.group() if match else cleaned)
    except json.JSONDecodeError as e:
        raise ValueError(f"Model reply is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Model reply is not a JSON object.")
    return data


def parse_extraction(response: str, definition: ChecklistDefinition) -> ExtractionResult:
    data = load_json_object(response)

    obtained: List[EntryEvidence] = []
    for item in data.get("obtained", []) or []:
        entry_id = str(item.get("id", "")).strip()
        if definition.get(entry_id) is None:
            logger.warning(f"Extractor reported unknown checklist id '{entry_id}'; ignoring.")
            continue
        obtained.append(EntryEvidence(
            entry_id=entry_id,
            confidence=parse_confidence(item.get("confidence", "medium")),
            detail=str(item.get("value", "")).strip()
        ))

    findings = [
        ExtractedFinding(topic=str(f.get("topic", "General")).strip(), detail=str(f.get("finding", "")).strip())
        for f in data.get("additional_findings", []) or []
        if f.get("finding")
    ]
    return ExtractionResult(obtained=obtained, findings=findings)


def parse_generated_checklist(response: str) -> GeneratedChecklist:
    data = load_json_object(response)
    entries = []
    for item in data.get("missing_info", []) or []:
        description = str(item.get("item", "")).strip()
        if not description:
            continue
        entries.append(ChecklistEntry(
            id=f"item-{len(entries) + 1:02d}",
            description=description,
            importance=parse_importance(item.get("importance", "important")),
            suggested_follow_up=str(item.get("suggested_question", "")).strip()
        ))
    if not entries:
        raise ValueError("Model returned an empty checklist.")
    return GeneratedChecklist(entries=tuple(entries), summary=str(data.get("summary", "")).strip())


class QwenChecklistAdapter(IChecklistExtractor, IChecklistGenerator):
    def __init__(self, model_path: str = "Qwen/Qwen2.5-7B-Instruct", max_new_tokens: int = 2048):
        self.model_path = model_path
        self.max_new_tokens = max_new_tokens
        self.orchestrator = ModelOrchestrator()
        self.device = "cuda" if torch.cuda.is_available() else "cpu"

    def _load(self) -> Tuple[object, object]:
        logger.info(f"Loading Qwen 2.5 from {self.model_path} in 4-bit...")

        bnb_config = BitsAndBytesConfig(
            load_in_4bit=True,
            bnb_4bit_use_double_quant=True,
            bnb_4bit_quant_type="nf4",
            bnb_4bit_compute_dtype=torch.bfloat16
        )

        tokenizer = AutoTokenizer.from_pretrained(self.model_path)
        model = AutoModelForCausalLM.from_pretrained(
            self.model_path,
            quantization_config=bnb_config,
            device_map="auto",
            trust_remote_code=True
        )
        return model, tokenizer

    def _generate(self, prompt: str) -> str:
        model, tokenizer = self.orchestrator.request_model(ModelType.EXTRACTION_LLM, self.model_path, self._load)

        inputs = tokenizer([prompt], return_tensors="pt").to(self.device)
        generated_ids = model.generate(
            **inputs,
            max_new_tokens=self.max_new_tokens,
            do_sample=False  # Greedy: the merge relies on stable entry ids
        )

        return tokenizer.batch_decode(
            generated_ids[:, inputs.input_ids.shape[1]:],
            skip_special_tokens=True
        )[0]

    def extract(self, text: str, definition: ChecklistDefinition) -> ExtractionResult:
        response = self._generate(self._build_extraction_prompt(text, definition))
        try:
            return parse_extraction(response, definition)
        except ValueError:
            logger.error(f"Failed to parse extraction reply. Raw response: {response}")
            raise

    def generate_checklist(self, context: QuestionContext) -> GeneratedChecklist:
        response = self._generate(self._build_checklist_prompt(context))
        try:
            return parse_generated_checklist(response)
        except ValueError:
            logger.error(f"Failed to parse checklist reply. Raw response: {response}")
            raise

    @staticmethod
    def _build_extraction_prompt(text: str, definition: ChecklistDefinition) -> str:
        checklist = "\n".join(
            f"- {e.id} [{e.importance.value}]: {e.description}" for e in definition.entries
        )
        return f"""<|im_start|>system
You are a workshop analyst. A facilitator's spoken answer to a discovery question is transcribed below.
Decide which checklist items the transcript actually answers. Only use ids from the checklist.
For every answered item give the ACTUAL value heard (numbers, names, systems), not a description
that information exists. Also capture valuable information beyond the checklist
(pain points, workarounds, integrations, compliance, constraints) as additional findings.

Output MUST be one valid JSON object:
{{"obtained": [{{"id": "item-01", "value": "3 legal entities: ...", "confidence": "high|medium|low"}}],
  "additional_findings": [{{"topic": "Pain Points", "finding": "..."}}]}}
<|im_end|>
<|im_start|>user
Checklist:
{checklist}

Transcript:
{text}
<|im_end|>
<|im_start|>assistant
"""

    @staticmethod
    def _build_checklist_prompt(context: QuestionContext) -> str:
        excluded = ""
        if context.already_obtained:
            listed = "\n".join(f"{i + 1}. {item}" for i, item in enumerate(context.already_obtained))
            excluded = f"\nAlready obtained by earlier questions (do NOT include these or similar items):\n{listed}\n"

        critical = "This question is CRITICAL: include more detailed items.\n" if context.is_critical else ""
        return f"""<|im_start|>system
You are an implementation consultant preparing a discovery workshop.
Generate the checklist of specific information items the answer to this question must provide.
Be specific ("Number of legal entities", not "company information"). Generate 10-30 items.
Rate importance: "critical" = must have, "important" = should have, "nice-to-have" = optional.

Output MUST be one valid JSON object:
{{"missing_info": [{{"item": "...", "importance": "critical|important|nice-to-have", "suggested_question": "..."}}],
  "summary": "What this question aims to discover"}}
<|im_end|>
<|im_start|>user
Session: {context.session_name or 'N/A'}
Entity: {context.entity_name or 'General'}
Business context: {context.business_context or 'Not specified'}
Question: {context.question_text}
{critical}{excluded}<|im_end|>
<|im_start|>assistant
"""
