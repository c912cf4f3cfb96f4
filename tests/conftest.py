"""Shared fixtures: keep config and stored reports out of the user's home."""

import pytest

ENV_VARS = (
    "TICKET_INSIGHTS_RESOLVED_STATUSES",
    "TICKET_INSIGHTS_MERGED_STATUSES",
    "TICKET_INSIGHTS_NEAR_SLA_MINUTES",
    "SLACK_WEBHOOK_URL",
    "SLACK_CHANNEL",
)


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Point the config file and report storage at a temp directory."""
    from ticket_insights import config, storage

    config_path = tmp_path / "config" / "config.json"
    monkeypatch.setattr(config, "CONFIG_PATH", config_path)
    monkeypatch.setattr(storage, "DEFAULT_STORAGE_DIR", tmp_path / "reports")
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return config_path


@pytest.fixture
def sample_rows():
    """Rows as they come out of a Portuguese help-desk export."""
    return [
        {
            "#": "101",
            "Tipo de Registro de Serviço": "Incidente",
            "Usuário solicitante": "joao",
            "Data de requisição": "04-03-2024 09:10:00",
            "Data de encerramento": "04-03-2024 11:00:00",
            "Prazo de SLA": "04-03-2024 10:00:00",
            "Status": "Resolvido",
            "Empresa": "ACME",
            "Categoria": "Rede",
            "Subcategoria": "VPN",
            "Equipe de atendimento": "N1",
            "Atendente atribuído": "Ana",
            "Título": "VPN fora do ar",
            "Prioridade": "Alta",
            "Tempo de Resposta": "00:30",
            "Tempo de Solução": "01:50",
            "Tempo Aguardando Cliente": "00:00",
            "Tempo Aguardando Fabricante": "",
            "contador de Reabertura": "1",
        },
        {
            "#": "102",
            "Tipo de Registro de Serviço": "Requisição",
            "Data de requisição": "05-03-2024 14:00:00",
            "Prazo de SLA": "05-03-2024 18:00:00",
            "Status": "Aberto",
            "Empresa": "Beta",
            "Categoria": "Acesso",
            "Subcategoria": "Senha",
            "Equipe de atendimento": "N2",
            "Atendente atribuído": "Bruno",
            "Título": "Reset de senha",
            "Prioridade": "Crítico",
            "Tempo de Resposta": "01:30",
            "Tempo de Solução": "00:00",
            "contador de Reabertura": "0",
        },
        {
            "#": "103",
            "Data de requisição": "05-03-2024 15:30:00",
            "Status": "Mesclado",
            "Empresa": "ACME",
            "Prioridade": "Alta",
        },
    ]
