"""User-facing messages, kept in one place.

Leading and trailing newlines are part of the layout.
"""

DOCS_WEBSITE = "https://docs.chef.io"
WORKSTATION_WEBSITE = "https://www.chef.sh"
USER_CONF_DIR = ".chef"

# --- errors ---

MISSING_MINIMUM_PARAMETERS_E001 = """
  E001

  there are missing parameters for this tool to work, provide a credentials file:
    --credentials string

  or the following required flags:
    --client-key string
    --client-name string
    --chef-server-url string

  missing: {missing}
"""

REPOSITORY_ALREADY_EXISTS_E002 = """
  E002

  The repository already exists in {path}.

  To re-run capture for node {node}, delete this directory.
"""

FEATURE_NOT_ENABLED_E003 = """
  E003

  '{feature}' is experimental and in development. You can temporarily
  enable it by setting the following environment variable:

    {env}=true

  Or permanently enable it by modifying $HOME/.chef-workstation/config.toml:

    [features]
    {key} = true
"""

PROFILE_NOT_FOUND = f"""
  profile '{{profile}}' not found in credentials file.

  verify the format of the credentials file by following this documentation:
    - {DOCS_WEBSITE}/workstation/knife_setup/#knife-profiles
"""

CREDENTIALS_NOT_FOUND = f"""
  credentials file not found. (default: $HOME/{USER_CONF_DIR}/credentials)

  setup your local credentials config by following this documentation:
    - {DOCS_WEBSITE}/workstation/knife_setup/#knife-profiles
"""

MALFORMED_CREDENTIALS = f"""
  unable to parse credentials file.

  verify the format of the credentials file by following this documentation:
    - {DOCS_WEBSITE}/workstation/knife_setup/#knife-profiles
"""

MALFORMED_CONFIG_TOML = f"""
  unable to parse config.toml file.

  verify the format of the configuration file by following this documentation:
    - {WORKSTATION_WEBSITE}/docs/reference/config/
"""

COOKSTYLE_NOT_FOUND = (
    "unable to run '{binary}', install Chef Workstation or add cookstyle to your PATH "
    "to use --run-cookstyle"
)

# --- capture ---

COOKBOOKS_NOT_SOURCED = """
------------------------ WARNING ---------------------------
Changes made to the following cookbooks in {cookbooks_dir}
cannot be saved upstream, though they can still be uploaded
to a Chef Server:

{cookbooks}

-----------------------------------------------------------
"""

CAPTURE_COMPLETE = """
You're ready to begin!

Start with 'cd {repository}; kitchen converge'.

As you identify issues, you can modify cookbooks in their
original checkout locations or in the repository's cookbooks
directory and they will be picked up on subsequent runs
of 'kitchen converge'.
"""

# --- reports ---

REPORT_GENERATED = "\n{kind} report generated at:\n  => {path}\n"
REPORT_ERRORS = "Error(s) found during the report generation, find more details at:\n  => {path}\n"
