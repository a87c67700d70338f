PERFIL_ADMIN = "Administrador"
PERFIL_GERENTE = "Gerente"
PERFIL_COORDENADOR = "Coordenador"

# Perfis que podem conceder XP avulso, gerenciar temporadas e reprocessar conquistas
PERFIS_COM_GESTAO = [PERFIL_ADMIN, PERFIL_GERENTE, PERFIL_COORDENADOR]

# Pontuação base por nota de avaliação (1 a 5 estrelas)
PONTOS_POR_NOTA_PADRAO = {1: -5, 2: -2, 3: 1, 4: 3, 5: 5}
MULTIPLICADOR_GLOBAL_PADRAO = 1.0

LIMITES_XP_AVULSO_PADRAO = {
    'limite_diario_pontos': 1000,
    'limite_diario_concessoes': 50,
    'min_pontos_concessao': 1,
    'max_pontos_concessao': 500,
    'max_concessoes_atendente_dia': 10,
    'cooldown_minutos': 0,
    'exigir_justificativa': False,
}

CATEGORIAS_XP_AVULSO = ["reconhecimento", "desempenho", "treinamento", "comportamento", "outro"]

ESCOPO_GERAL = "geral"
MEDALHAS_RANKING = ("ouro", "prata", "bronze")

DURACAO_MINIMA_TEMPORADA_DIAS = 1
LEADERBOARD_LIMITE_PADRAO = 50
LEADERBOARD_LIMITE_MAXIMO = 500
