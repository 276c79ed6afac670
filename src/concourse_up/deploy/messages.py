"""User facing messages printed by deploy and info."""

from jinja2 import Environment, BaseLoader

from concourse_up.deploy.models import Configuration

CONFIG_LOADED = "\nUSING PREVIOUS DEPLOYMENT CONFIG\n"

UPGRADE_RUNNING = "\nUPGRADE RUNNING IN BACKGROUND\n\n"

DEPLOY_SUCCESS = """\
DEPLOY SUCCESSFUL. Log in with:
fly --target {{ project }} login{% if not concourse_user_provided_cert %} --insecure{% endif %} \
--concourse-url https://{{ domain }} --username {{ concourse_username }} --password {{ concourse_password }}

Metrics available at https://{{ domain }}:3000 using the same username and password

Log into credhub with:
eval "$(concourse-up info --env --region {{ region }} {{ project }})"
"""

ENV_EXPORTS = """\
export BOSH_ENVIRONMENT={{ director_public_ip }}
export BOSH_CA_CERT='{{ director_ca_cert }}'
export BOSH_DEPLOYMENT={{ deployment }}
export BOSH_CLIENT={{ director_username }}
export BOSH_CLIENT_SECRET={{ director_password }}
export CREDHUB_SERVER={{ credhub_url }}
export CREDHUB_CA_CERT='{{ credhub_ca_cert }}'
export CREDHUB_CLIENT={{ credhub_username }}
export CREDHUB_SECRET={{ credhub_password }}
"""

_env = Environment(loader=BaseLoader(), keep_trailing_newline=True)


def deploy_success_message(config: Configuration) -> str:
    """Login instructions shown after a fresh deploy."""
    return _env.from_string(DEPLOY_SUCCESS).render(**config.to_dict())


def env_exports(config: Configuration) -> str:
    """Shell exports for talking to the director and credhub."""
    return _env.from_string(ENV_EXPORTS).render(**config.to_dict())
