"""Tests for portal page helpers (no browser involved)."""

from adapters.browser.portal_page import parse_result_table, should_block

RESULT_HTML = """
<html><body>
<app-consulta-toxicologico>
  <h3 class="text-primary">Resultado da consulta</h3>
  <table>
    <tr><th>Campo</th><th>Valor</th></tr>
    <tr><td>Nome</td><td>FULANO DE TAL</td></tr>
    <tr><td> Prazo para realização de novo exame </td><td>15/03/2025</td></tr>
    <tr><td>Amostra para novo exame coletada em</td><td>Não há registro</td></tr>
    <tr><td colspan="2">Rodapé</td></tr>
  </table>
</app-consulta-toxicologico>
<table><tr><td>Fora</td><td>ignorado</td></tr></table>
</body></html>
"""


class TestParseResultTable:
    def test_reads_two_cell_rows_inside_component(self) -> None:
        rows = parse_result_table(RESULT_HTML)

        assert rows == {
            "Nome": "FULANO DE TAL",
            "Prazo para realização de novo exame": "15/03/2025",
            "Amostra para novo exame coletada em": "Não há registro",
        }

    def test_empty_html(self) -> None:
        assert parse_result_table("") == {}


class TestShouldBlock:
    def test_blocks_images_and_fonts(self) -> None:
        assert should_block(url="https://portal/logo.png", resource_type="image")
        assert should_block(url="https://portal/font.woff2", resource_type="font")

    def test_blocks_trackers(self) -> None:
        assert should_block(url="https://www.Google-Analytics.com/collect", resource_type="script")
        assert should_block(url="https://ad.doubleclick.net/x", resource_type="xhr")

    def test_allows_portal_requests(self) -> None:
        assert not should_block(url="https://portalservicos.senatran.serpro.gov.br/api", resource_type="xhr")
