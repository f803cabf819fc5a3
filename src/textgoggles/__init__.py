from .capabilities import Capabilities, resolve_capabilities
from .classify import Classifier, NodeKind
from .config import DEFAULT_CONFIG, PipelineConfig
from .context import PipelineContext
from .coordinator import ChangeCoordinator, CoordinatorState
from .errors import ErrorLog, PipelineError, PipelineTornDown, RuleCompileError, TextGogglesError, collect_errors
from .mappings import DEFAULT_RULES, default_source
from .node import Document, ElementNode, Node, TextNode
from .observer import MutationObserver, MutationRecord
from .parser import parse, parse_fragment
from .pipeline import Pipeline, convert_html
from .processor import ProcessResult, Segment, TextCache, TextProcessor
from .rules import PatternRule, PatternSource
from .serialize import to_html
from .tooltip import TooltipController, TooltipPhase, TooltipState
from .walker import PassState, TreeWalker, WalkPass

__all__ = [
    "DEFAULT_CONFIG",
    "DEFAULT_RULES",
    "Capabilities",
    "ChangeCoordinator",
    "Classifier",
    "CoordinatorState",
    "Document",
    "ElementNode",
    "ErrorLog",
    "MutationObserver",
    "MutationRecord",
    "Node",
    "NodeKind",
    "PassState",
    "PatternRule",
    "PatternSource",
    "Pipeline",
    "PipelineConfig",
    "PipelineContext",
    "PipelineError",
    "PipelineTornDown",
    "ProcessResult",
    "RuleCompileError",
    "Segment",
    "TextCache",
    "TextGogglesError",
    "TextNode",
    "TextProcessor",
    "TooltipController",
    "TooltipPhase",
    "TooltipState",
    "TreeWalker",
    "WalkPass",
    "collect_errors",
    "convert_html",
    "default_source",
    "parse",
    "parse_fragment",
    "resolve_capabilities",
    "to_html",
]
