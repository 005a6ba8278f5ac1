'''External executables used as coprocesses, and the ways of finding them.'''

import logging
import os
import subprocess

_log = logging.getLogger(__name__)


class Tool(object):
    ''' An external executable. install_methods are tried in order until one
        of them reports the executable as present.
    '''

    def __init__(self, install_methods=None):
        self.install_methods = install_methods or []
        self.installed_method = None
        self.exec_path = None

    def is_installed(self):
        return self.installed_method is not None

    def install(self):
        if self.is_installed():
            return
        for m in self.install_methods:
            if m.is_installed():
                self.installed_method = m
                self.exec_path = m.executable_path()
                break

    def version(self):
        return None

    def executable_path(self):
        return self.exec_path

    def install_and_get_path(self):
        self.install()
        if self.executable_path() is None:
            raise NameError("unsuccessful in installing " + type(self).__name__)
        return self.executable_path()


class InstallMethod(object):
    ''' One way of providing a tool. attempt_install never raises: callers
        check is_installed() afterwards.
    '''

    def __init__(self):
        self.attempts = 0

    def is_attempted(self):
        return self.attempts

    def attempt_install(self):    # Override _attempt_install, not this.
        self.attempts += 1
        self._attempt_install()

    def _attempt_install(self):
        raise NotImplementedError

    def is_installed(self):
        if not self.is_attempted():
            self.attempt_install()
        return self._is_installed()

    def _is_installed(self):
        raise NotImplementedError

    def executable_path(self):
        raise NotImplementedError


class PrexistingUnixCommand(InstallMethod):
    ''' An executable that is already on the file system (typically found with
        shutil.which); nothing is installed.

        verifycmd, if given, is an argument list run after the executable,
        which must exit with verifycode for the command to count as installed.
    '''

    def __init__(self, path, verifycmd=None, verifycode=0, require_executability=True):
        self.path = path
        self.verifycmd = verifycmd
        self.verifycode = verifycode
        self.require_executability = require_executability
        self.installed = False
        InstallMethod.__init__(self)

    def _attempt_install(self):
        mode = (os.X_OK | os.R_OK) if self.require_executability else os.R_OK
        self.installed = bool(self.path) and os.access(self.path, mode)
        if self.installed and self.verifycmd is not None:
            try:
                result = subprocess.run([self.path] + list(self.verifycmd),
                                        stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
                self.installed = (result.returncode == self.verifycode)
            except OSError as e:
                _log.debug("could not run %s: %s", self.path, e)
                self.installed = False

    def _is_installed(self):
        return self.installed

    def executable_path(self):
        return self.path if self.installed else None
