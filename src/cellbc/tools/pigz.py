'''
    pigz - parallel implementation of gzip, used as a streaming
    (de)compressor coprocess
'''

import logging
import shutil
import subprocess

import cellbc.tools
import cellbc.util.misc
from cellbc.errors import MissingToolError

TOOL_NAME = 'pigz'
DEFAULT_THREADS = 4

log = logging.getLogger(__name__)


class Pigz(cellbc.tools.Tool):

    def __init__(self, install_methods=None):
        if install_methods is None:
            install_methods = [cellbc.tools.PrexistingUnixCommand(shutil.which(TOOL_NAME), verifycmd=['--version'])]
        super(Pigz, self).__init__(install_methods=install_methods)

    def version(self):
        # pigz 2.3 and earlier print the version on stderr
        result = subprocess.run([self.install_and_get_path(), '--version'],
                                stdout=subprocess.PIPE, stderr=subprocess.STDOUT, check=True)
        return result.stdout.decode('UTF-8').strip().split()[-1]

    def check_installed(self):
        '''Raise MissingToolError unless pigz is on the PATH and runs.'''
        self.install()
        if not self.is_installed():
            raise MissingToolError("`{}` is not installed or not found in PATH.".format(TOOL_NAME))
        log.debug("using %s at %s", TOOL_NAME, self.executable_path())

    def compress_cmd(self, threads=None):
        '''Command line compressing stdin to stdout.'''
        return [self.install_and_get_path(), '-p', str(self._threads(threads)), '-c']

    def decompress_cmd(self, threads=None):
        '''Command line decompressing the file given as the next argument to stdout.'''
        return [self.install_and_get_path(), '-dc', '-p', str(self._threads(threads))]

    def _threads(self, threads):
        if threads is None:
            threads = DEFAULT_THREADS
        return cellbc.util.misc.sanitize_thread_count(threads)
