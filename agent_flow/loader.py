"""
Workflow document loading.

Workflow files are YAML documents of the form::

    name: deploy
    claude_session: shared        # optional, defaults to isolated
    workflow:
      - name: lint
        run: make lint
      - name: summarize
        agent: claude
        prompt: Summarize the lint output
        skip_permission: true
"""

import logging
from pathlib import Path
from typing import Union

import yaml

from agent_flow.exceptions import WorkflowDefinitionError
from agent_flow.types import WorkflowDefinition

logger = logging.getLogger(__name__)


def load_definition_text(text: str, source: str = "<string>") -> WorkflowDefinition:
    """Parse a YAML document into a WorkflowDefinition.

    Raises:
        WorkflowDefinitionError: If the text is not valid YAML or does not
            describe a workflow
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise WorkflowDefinitionError(f"Invalid YAML in {source}: {e}") from e

    if data is None:
        raise WorkflowDefinitionError(f"Workflow document {source} is empty")

    definition = WorkflowDefinition.from_dict(data)
    logger.debug(
        f"Loaded workflow '{definition.name}' from {source} "
        f"({len(definition.steps)} steps, session={definition.session_mode.value})"
    )
    return definition


def load_definition_file(path: Union[str, Path]) -> WorkflowDefinition:
    """Read a UTF-8 YAML file and parse it into a WorkflowDefinition"""
    file_path = Path(path)
    text = file_path.read_text(encoding="utf-8")
    return load_definition_text(text, source=str(file_path))
