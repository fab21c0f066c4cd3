"""
Prompts for the extraction, dimensional inference and verification calls.

The documents are Spanish "Estado de Mediciones"; prompts are in English but
spell out the Spanish number format explicitly.
"""

from typing import List

from .models import CatalogEntry, ExtractionContext


NUMBER_FORMAT_RULES = """## IMPORTANT: Numbers

The document uses the European/Spanish format: ',' for decimals and '.' for thousands.
- "1.200,50" is one thousand two hundred and fifty hundredths -> 1200.5
- "30,00" is thirty -> 30. Do NOT read it as three thousand.
- "10.000" for m2 in a dwelling is most likely 10 with three decimals -> 10, not ten thousand.
  When a value is ambiguous, prefer the reading with fewer digits.
- ALWAYS return quantities as plain JSON numbers: decimal point, no thousands separator."""


ITEM_FIELDS = """For each item ("partida") extract:
- order: sequence number
- code: item code if present (e.g. 1.1, 02.03). Leave empty if none.
- description: the COMPLETE description of the work item
- unit: unit of measure as written (m2, m, ud, kg, pa...)
- quantity: the measured quantity
- type: "LABOR_ITEM" if it involves labor plus materials (e.g. "Demolición de tabique"),
        "MATERIAL_ITEM" if it is only the supply of a product (e.g. "Grifo monomando")
- chapter: the CHAPTER or PHASE heading this item belongs to (e.g. "01 ACTUACIONES PREVIAS").
  Use the headings/bold titles you see. If there is none, use the current chapter from the context.
- section: the sub-heading inside the chapter, if any."""


OUTPUT_FORMAT = """## Output Format

Return a JSON object:
```json
{
  "detected_chapter": "Main chapter heading of this block, if any",
  "detected_section": "Section heading of this block, if any",
  "continuation_description": "Text that completes the last item of the previous block, if any",
  "items": [
    {"chapter": "01 ACTUACIONES PREVIAS", "order": 1, "code": "1.1",
     "description": "Full text...", "unit": "m2", "quantity": 10.5, "type": "LABOR_ITEM"}
  ]
}
```

Return ONLY the JSON object, no markdown and no other text."""


def text_chunk_prompt(chunk: str, context: ExtractionContext) -> str:
    """Prompt for one page-aligned chunk of a document's text layer."""
    return f"""You are an expert construction estimator. Extract every line item (measurement line)
from the following text fragment of a Spanish bill of quantities ("Estado de Mediciones").

## Previous Context
- Current chapter: "{context.current_chapter}"
- Current section: "{context.current_section}"

## Text To Analyze
\"\"\"
{chunk}
\"\"\"

## Strict Rules

1. MULTI-LINE: long descriptions are often broken across several physical lines. You MUST join
   every line that belongs to the same item until you reach its unit/quantity block.
   NEVER return a description cut in half.
2. If the fragment STARTS with text that finishes the last item of the previous fragment
   (no code, no unit, no quantity of its own), return that text in "continuation_description"
   and do NOT create a new item for it.
3. Confirm the current chapter or override it when the fragment shows a new chapter heading.

{ITEM_FIELDS}

{NUMBER_FORMAT_RULES}

{OUTPUT_FORMAT}"""


def vision_page_prompt(context: ExtractionContext) -> str:
    """Prompt sent alongside a single-page sub-document or page image."""
    return f"""You are an expert in extracting data from construction documents.
You are analyzing ONE SINGLE PAGE of a Spanish bill of quantities ("Estado de Mediciones").

## Previous Context
- Current chapter: "{context.current_chapter}"
- Current section: "{context.current_section}"

## Task
1. Analyze this page.
2. Detect whether a new chapter or section starts (large or bold headings).
3. Extract ALL line items visible on this page.
4. If a description continues from the previous page, return that text in
   "continuation_description" instead of creating a new item.

{ITEM_FIELDS}

{NUMBER_FORMAT_RULES}

{OUTPUT_FORMAT}"""


def whole_document_prompt() -> str:
    """Prompt for a background job that analyzes a complete document in one call."""
    return f"""You are an expert in construction. Analyze this COMPLETE PDF document
(a Spanish bill of quantities, "Estado de Mediciones") and extract ALL line items from every page.

Carry the chapter and section headings forward: every item belongs to the last heading
seen before it, even on a later page. Join descriptions that continue across lines or pages
into one item. Also return "page" for each item: the page number where it starts.

{ITEM_FIELDS}

{NUMBER_FORMAT_RULES}

{OUTPUT_FORMAT}"""


def dimensional_inference_prompt(description: str, unit: str) -> str:
    """Prompt asking for literal dimensions inside a generic-unit item's description."""
    return f"""You are an architectural measurement calculator.
This line item has the generic unit "{unit}" but it must be sized physically (m2, m3, m, kg)
to be matched against the price database.

## Item Description
\"\"\"{description}\"\"\"

## Task
Look for LITERAL measurements in the text (e.g. 50m2, 10cm thick, 3m long).
Convert everything to metres before calculating anything.

- area_m2: the surface area if one is stated
- thickness_m: the thickness or depth if one is stated (10cm -> 0.1)
- length_m: a single length if that is the only dimension
- volume_m3: only if a volume is written explicitly
- implies_volume: true ONLY if the work is clearly excavation ("excavación", "vaciado"),
  bulk removal, mass fill ("relleno masivo"), or is otherwise paid by volume

## Rules For Surfaces (layers, gravel, screeds, paint)
- If you see Area AND Thickness (e.g. 50m2 x 0.10m) the canonical quantity is the ORIGINAL AREA (50)
  and inferred_unit is "m2". Base, gravel and paving items are paid per square metre;
  the thickness is only descriptive.
- Compute a volume (m3) ONLY for excavation, emptying or mass fill work.
- If you only see a single length, inferred_unit is "m".

If there are no clear numeric dimensions, set has_dimensions to false.

Return ONLY a JSON object with the keys: has_dimensions, area_m2, thickness_m, length_m,
volume_m3, implies_volume, inferred_unit, inferred_quantity, reasoning."""


def candidate_verification_prompt(description: str, candidates: List[CatalogEntry]) -> str:
    """Single-shot prompt asking the model to pick the best catalog candidate."""
    listing = "\n".join(
        f"{i}. [{c.kind.value}] {c.description} (Price: {c.price:.2f} EUR/{c.unit})"
        for i, c in enumerate(candidates, start=1)
    )
    return f"""I need to find the best price book match for a construction task.

Task: "{description}"

Candidates:
{listing}

Instructions:
1. Analyze semantic equivalence between the task and each candidate.
2. Select the BEST match index (1-{len(candidates)}).
3. If NONE is a good match, or the prices are absurdly mismatched, return 0.

Return ONLY a JSON object: {{"selected_index": <number>, "reason": "<string>"}}"""
