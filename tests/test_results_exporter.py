import pandas as pd
from openpyxl import load_workbook

from cxscan.operations.result_parser import ResultParser
from cxscan.utils.results_exporter import COLUMNS, ResultsExporter
from cxscan.models.report import RawReport
from fakes import THREE_FINDINGS, build_xml


def parsed():
    return ResultParser().parse(RawReport.sast(build_xml(THREE_FINDINGS)))


def test_write_csv(tmp_path):
    path = ResultsExporter().write(parsed(), str(tmp_path / 'results.csv'))

    df = pd.read_csv(path)
    assert list(df.columns) == COLUMNS
    assert list(df['Severity']) == ['High', 'Medium', 'Low']
    assert list(df['Line']) == [42, 17, 3]


def test_write_xlsx_with_summary(tmp_path):
    path = ResultsExporter().write(parsed(), str(tmp_path / 'results.xlsx'))

    workbook = load_workbook(path)
    assert workbook.sheetnames == ['Findings', 'Summary']
    findings = list(workbook['Findings'].values)
    assert list(findings[0]) == COLUMNS
    assert len(findings) == 4
    summary = {row[0]: row[1] for row in workbook['Summary'].values}
    assert summary['TotalHigh'] == 1
    assert summary['Total'] == 3
    assert 'TotalInfo' not in summary


def test_empty_results_still_have_header(tmp_path):
    results = parsed().with_findings([])

    path = ResultsExporter().write(results, str(tmp_path / 'empty.csv'))

    assert list(pd.read_csv(path).columns) == COLUMNS
