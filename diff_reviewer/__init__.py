"""
Gemini Diff Reviewer Package

Turns a unified diff into positioned review comments and a merge
recommendation, using Google's Gemini AI as the reviewer.
"""

__version__ = "1.0.0"
__description__ = "Diff review aggregation and decision engine powered by Gemini AI"

# Submodules are imported on first attribute access so that the pure pipeline
# stages can be used without google.generativeai or PyGithub being imported.

__all__ = [
    # Main classes
    'Config', 'CodeReviewer', 'CodeReviewerError', 'ReviewOutcome',
    # Data models
    'DiffUnit', 'Chunk', 'LineRef', 'Finding', 'UnitReview', 'AggregateReview',
    'PositionedComment', 'PRDetails', 'Severity', 'FindingCategory', 'Recommendation',
    'ReviewGranularity',
    # Pipeline stages
    'DiffParser', 'DiffParsingError', 'PathFilter', 'GuidelinesProvider',
    'DirectoryGuidanceStore', 'ReviewDispatcher', 'ReviewResponseParser',
    'FindingAggregator', 'AggregationPolicy', 'CommentMapper',
    # Collaborators
    'GeminiReviewer', 'ReviewerError', 'GitHubClient', 'GitHubClientError',
    'PostingError', 'PostingReport',
]

# Lazy import map: attribute -> (module_path, attr_name)
_lazy_exports = {
    # Main classes
    'Config': ('diff_reviewer.config', 'Config'),
    'CodeReviewer': ('diff_reviewer.code_reviewer', 'CodeReviewer'),
    'CodeReviewerError': ('diff_reviewer.code_reviewer', 'CodeReviewerError'),
    'ReviewOutcome': ('diff_reviewer.code_reviewer', 'ReviewOutcome'),
    # Models
    'DiffUnit': ('diff_reviewer.models', 'DiffUnit'),
    'Chunk': ('diff_reviewer.models', 'Chunk'),
    'LineRef': ('diff_reviewer.models', 'LineRef'),
    'Finding': ('diff_reviewer.models', 'Finding'),
    'UnitReview': ('diff_reviewer.models', 'UnitReview'),
    'AggregateReview': ('diff_reviewer.models', 'AggregateReview'),
    'PositionedComment': ('diff_reviewer.models', 'PositionedComment'),
    'PRDetails': ('diff_reviewer.models', 'PRDetails'),
    'Severity': ('diff_reviewer.models', 'Severity'),
    'FindingCategory': ('diff_reviewer.models', 'FindingCategory'),
    'Recommendation': ('diff_reviewer.models', 'Recommendation'),
    'ReviewGranularity': ('diff_reviewer.models', 'ReviewGranularity'),
    # Pipeline stages
    'DiffParser': ('diff_reviewer.diff_parser', 'DiffParser'),
    'DiffParsingError': ('diff_reviewer.diff_parser', 'DiffParsingError'),
    'PathFilter': ('diff_reviewer.path_filter', 'PathFilter'),
    'GuidelinesProvider': ('diff_reviewer.guidelines', 'GuidelinesProvider'),
    'DirectoryGuidanceStore': ('diff_reviewer.guidelines', 'DirectoryGuidanceStore'),
    'ReviewDispatcher': ('diff_reviewer.review_dispatcher', 'ReviewDispatcher'),
    'ReviewResponseParser': ('diff_reviewer.response_parser', 'ReviewResponseParser'),
    'FindingAggregator': ('diff_reviewer.aggregator', 'FindingAggregator'),
    'AggregationPolicy': ('diff_reviewer.aggregator', 'AggregationPolicy'),
    'CommentMapper': ('diff_reviewer.comment_mapper', 'CommentMapper'),
    # Collaborators
    'GeminiReviewer': ('diff_reviewer.gemini_client', 'GeminiReviewer'),
    'ReviewerError': ('diff_reviewer.gemini_client', 'ReviewerError'),
    'GitHubClient': ('diff_reviewer.github_client', 'GitHubClient'),
    'GitHubClientError': ('diff_reviewer.github_client', 'GitHubClientError'),
    'PostingError': ('diff_reviewer.posting', 'PostingError'),
    'PostingReport': ('diff_reviewer.posting', 'PostingReport'),
}


def __getattr__(name):
    target = _lazy_exports.get(name)
    if not target:
        raise AttributeError(f"module 'diff_reviewer' has no attribute '{name}'")
    module_path, attr_name = target
    try:
        module = __import__(module_path, fromlist=[attr_name])
    except ImportError as e:
        # A missing heavy dependency should name the export that needed it
        raise ImportError(f"Failed to import '{name}' from '{module_path}': {e}") from e
    value = getattr(module, attr_name)
    globals()[name] = value  # cache for future access
    return value
