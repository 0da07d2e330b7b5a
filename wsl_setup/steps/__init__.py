from .step_10_systemd_enable import SystemdEnableStep
from .step_15_backup import BackupStep
from .step_20_system_update import SystemUpdateStep
from .step_25_apt_repos import AptReposStep
from .step_30_packages import PackagesStep
from .step_35_fzf import FzfStep
from .step_40_shell import ShellStep
from .step_50_python_env import PythonEnvStep
from .step_55_nodejs_env import NodejsEnvStep
from .step_60_go_env import GoEnvStep
from .step_65_containers import ContainersStep
from .step_70_k8s_tools import K8sToolsStep
from .step_75_tmux import TmuxStep
from .step_80_ssh_gpg import SshGpgStep
from .step_85_ssh_validate import SshValidateStep
from .step_90_clone_repos import CloneReposStep
from .step_95_final import FinalStep

__all__ = [
    "SystemdEnableStep",
    "BackupStep",
    "SystemUpdateStep",
    "AptReposStep",
    "PackagesStep",
    "FzfStep",
    "ShellStep",
    "PythonEnvStep",
    "NodejsEnvStep",
    "GoEnvStep",
    "ContainersStep",
    "K8sToolsStep",
    "TmuxStep",
    "SshGpgStep",
    "SshValidateStep",
    "CloneReposStep",
    "FinalStep",
]
