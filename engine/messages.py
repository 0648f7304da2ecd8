"""User-visible (pt-BR) error messages."""

PERMISSION_DENIED = (
    "Permissão negada. Verifique as regras de segurança. "
    "O acesso de Admin pode levar alguns minutos para propagar."
)
CHARACTER_LOAD_FAILED = "Não foi possível carregar os dados do personagem."
CHARACTER_SAVE_FAILED = "Falha ao salvar o personagem na nuvem."
ROSTER_LOAD_FAILED = "Falha ao carregar os personagens."
ORDER_SAVE_FAILED = "Falha ao salvar a ordem dos personagens."
