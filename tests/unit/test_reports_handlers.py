"""
================================================================================
Indicia Advanced Reports - Report Handlers Unit Tests
================================================================================
Developed by Waqqas Hanafi
Calaveras County Health and Human Services Agency

Description:
    Unit tests for the report handlers module, testing request assembly and
    dispatch to the metrics engine with a mocked engine.

Test Coverage:
    - Count category parsing and defaults
    - species_only / deprecated exclude_higher_taxa flags
    - ReportRequest assembly per report
    - Dispatch to exactly one engine computation
    - Unknown report fallback
================================================================================
"""
import pytest
from unittest.mock import Mock

from advanced_reports.errors import BadRequest, Unauthorized
from advanced_reports.reports.handlers import (
    ReportDispatcher,
    build_report_request,
    parse_categories,
    resolve_species_only
)
from advanced_reports.reports.models import ReportName, ReportRequest


class TestParseCategories:
    """Test suite for counts category parsing"""

    def test_default_is_records(self, params):
        assert parse_categories(params(survey_id='5')) == ('records',)

    def test_multiple_categories(self, params):
        assert parse_categories(params(categories='species,photos')) == ('species', 'photos')

    def test_all_categories(self, params):
        categories = parse_categories(params(categories='records,species,photos,recorders'))

        assert categories == ('records', 'species', 'photos', 'recorders')

    def test_duplicates_removed(self, params):
        assert parse_categories(params(categories='species,species,records')) == ('species', 'records')

    def test_invalid_category_named(self, params):
        with pytest.raises(BadRequest) as exc_info:
            parse_categories(params(categories='bogus'))

        assert exc_info.value.title == 'Parameter for categories contains invalid value bogus.'

    def test_first_invalid_category_named(self, params):
        with pytest.raises(BadRequest) as exc_info:
            parse_categories(params(categories='species,wrong,bad'))

        assert 'invalid value wrong.' in exc_info.value.title

    def test_empty_categories_rejected(self, params):
        """Test a supplied but empty categories parameter is not the default"""
        with pytest.raises(BadRequest):
            parse_categories(params(categories=''))

    def test_whitespace_not_stripped(self, params):
        with pytest.raises(BadRequest):
            parse_categories(params(categories='species, photos'))


class TestResolveSpeciesOnly:
    """Test suite for the species only flag"""

    def test_neither_parameter(self, params):
        assert resolve_species_only(params(survey_id='5')) is False

    def test_species_only(self, params):
        assert resolve_species_only(params(species_only='t')) is True

    def test_deprecated_exclude_higher_taxa(self, params):
        assert resolve_species_only(params(exclude_higher_taxa='t')) is True

    @pytest.mark.parametrize("value", ['true', 'T', '1', 'f', ''])
    def test_only_literal_t_counts(self, value, params):
        assert resolve_species_only(params(species_only=value, exclude_higher_taxa=value)) is False


class TestBuildReportRequest:
    """Test suite for report request assembly"""

    def test_user_stats_request(self, params):
        request = build_report_request(ReportName.USER_STATS, '42', params(survey_id='5', user_id='7'))

        assert request == ReportRequest(ReportName.USER_STATS, '42', {'metadata.survey.id': '5'})

    def test_counts_request(self, params):
        request = build_report_request(
            ReportName.COUNTS, '42', params(group_id='9', categories='species,photos')
        )

        assert request.filters == {'metadata.group.id': '9'}
        assert request.categories == ('species', 'photos')
        assert request.species_only is False

    def test_counts_request_default_categories(self, params):
        request = build_report_request(ReportName.COUNTS, '42', params(survey_id='5'))

        assert request.categories == ('records',)

    def test_taxa_list_request(self, params):
        request = build_report_request(
            ReportName.RECORDED_TAXA_LIST, '42', params(survey_id='5', species_only='t')
        )

        assert request.species_only is True
        assert request.categories == ()

    def test_validation_runs_before_category_parsing(self, params):
        """Test a missing scope is reported ahead of a bad category"""
        with pytest.raises(BadRequest) as exc_info:
            build_report_request(ReportName.COUNTS, '42', params(categories='bogus'))

        assert 'survey_id or group_id' in exc_info.value.title

    def test_unauthorized_user(self, params):
        with pytest.raises(Unauthorized):
            build_report_request(ReportName.RECORDED_TAXA_LIST, '42', params(survey_id='5', user_id='7'))

    def test_deterministic(self, params):
        query = params(survey_id='5', categories='species', year='2024')

        first = build_report_request(ReportName.COUNTS, '42', query)
        second = build_report_request(ReportName.COUNTS, '42', query)

        assert first == second


class TestReportDispatcher:
    """Test suite for dispatching to the metrics engine"""

    def test_user_stats(self, mock_engine):
        request = ReportRequest(ReportName.USER_STATS, '42', {'metadata.survey.id': '5'})

        result = ReportDispatcher(mock_engine).dispatch(request)

        assert result == mock_engine.compute_user_metrics.return_value
        mock_engine.compute_user_metrics.assert_called_once_with({'metadata.survey.id': '5'})
        mock_engine.compute_counts.assert_not_called()
        mock_engine.compute_recorded_taxa_list.assert_not_called()

    def test_counts(self, mock_engine):
        request = ReportRequest(
            ReportName.COUNTS, '42', {'metadata.group.id': '9'}, categories=('species', 'photos')
        )

        result = ReportDispatcher(mock_engine).dispatch(request)

        assert result == {'records': 250}
        mock_engine.compute_counts.assert_called_once_with({'metadata.group.id': '9'}, ['species', 'photos'])
        mock_engine.compute_user_metrics.assert_not_called()

    def test_recorded_taxa_list(self, mock_engine):
        request = ReportRequest(
            ReportName.RECORDED_TAXA_LIST, '42', {'metadata.survey.id': '5'}, species_only=True
        )

        ReportDispatcher(mock_engine).dispatch(request)

        mock_engine.compute_recorded_taxa_list.assert_called_once_with({'metadata.survey.id': '5'}, True)
        mock_engine.compute_counts.assert_not_called()

    def test_unknown_report_fallback(self, mock_engine):
        """Test a report outside the known set is refused"""
        request = ReportRequest(Mock(value='new-report'), '42', {'metadata.survey.id': '5'})

        with pytest.raises(BadRequest) as exc_info:
            ReportDispatcher(mock_engine).dispatch(request)

        assert exc_info.value.title == 'Unknown advanced report requested.'
        mock_engine.compute_user_metrics.assert_not_called()
        mock_engine.compute_counts.assert_not_called()
        mock_engine.compute_recorded_taxa_list.assert_not_called()

    def test_engine_errors_propagate(self, mock_engine):
        mock_engine.compute_counts.side_effect = RuntimeError("search failed")
        request = ReportRequest(ReportName.COUNTS, '42', {'metadata.survey.id': '5'}, categories=('records',))

        with pytest.raises(RuntimeError):
            ReportDispatcher(mock_engine).dispatch(request)
