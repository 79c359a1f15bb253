"""
Tests for the errors module.
"""

from dealroom.errors import (
    DatabaseConnectionError,
    DatabaseConstraintError,
    DatabaseError,
    DealroomError,
    ExtractionError,
    NotFoundError,
    OpenAIError,
    OpenAIModelError,
    OpenAIRateLimitError,
    PipelineError,
    StorageError,
    ClientError,
    SummarizationError,
    wrap_database_error,
    wrap_openai_error,
)


class TestErrorHierarchy:
    """Test error class hierarchy."""

    def test_base_error_with_context(self):
        error = DealroomError('Something went wrong', context={'deal_id': 7})

        assert error.message == 'Something went wrong'
        assert error.context == {'deal_id': 7}
        assert 'deal_id' in str(error)

    def test_base_error_without_context(self):
        error = DealroomError('Simple error')

        assert error.context == {}
        assert str(error) == 'Simple error'

    def test_pipeline_errors(self):
        for cls in (NotFoundError, ExtractionError, SummarizationError):
            assert issubclass(cls, PipelineError)
        assert issubclass(PipelineError, DealroomError)

    def test_client_errors(self):
        for cls in (OpenAIError, StorageError, DatabaseError):
            assert issubclass(cls, ClientError)
        assert issubclass(OpenAIRateLimitError, OpenAIError)
        assert issubclass(DatabaseConstraintError, DatabaseError)

    def test_not_found_carries_entity(self):
        error = NotFoundError('Deal', 42)
        assert error.message == 'Deal not found'
        assert error.entity == 'Deal'
        assert error.entity_id == 42


class TestWrapOpenAIError:
    def test_rate_limit(self):
        wrapped = wrap_openai_error(Exception('Rate limit reached for gpt-4.1-mini'))
        assert isinstance(wrapped, OpenAIRateLimitError)
        assert wrapped.context['error_type'] == 'Exception'

    def test_refusal(self):
        assert isinstance(wrap_openai_error(Exception('model refused')), OpenAIModelError)

    def test_generic(self):
        wrapped = wrap_openai_error(RuntimeError('boom'), {'model': 'gpt-4.1-mini'})
        assert type(wrapped) is OpenAIError
        assert wrapped.context['model'] == 'gpt-4.1-mini'

    def test_already_typed_passthrough(self):
        original = OpenAIRateLimitError('slow down')
        assert wrap_openai_error(original) is original


class TestWrapDatabaseError:
    def test_connection(self):
        assert isinstance(wrap_database_error(OSError('could not connect to server')), DatabaseConnectionError)

    def test_constraint(self):
        wrapped = wrap_database_error(Exception('violates foreign key constraint'))
        assert isinstance(wrapped, DatabaseConstraintError)

    def test_generic(self):
        assert type(wrap_database_error(Exception('syntax error'))) is DatabaseError
