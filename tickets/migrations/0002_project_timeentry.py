import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


ACTIVITY_CHOICES = [
    ('Development', 'Development'),
    ('Support', 'Support'),
    ('Meeting', 'Meeting'),
    ('Research', 'Research'),
    ('Documentation', 'Documentation'),
    ('Testing', 'Testing'),
    ('Training', 'Training'),
    ('Other', 'Other'),
]


class Migration(migrations.Migration):

    dependencies = [
        ('tickets', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Project',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=150, verbose_name='Name')),
                ('code', models.CharField(max_length=30, unique=True, verbose_name='Code')),
                ('client_name', models.CharField(blank=True, max_length=150, verbose_name='Client')),
                ('description', models.TextField(blank=True, verbose_name='Description')),
                ('status', models.CharField(
                    choices=[('planned', 'Planned'), ('active', 'Active'),
                             ('on_hold', 'On Hold'), ('completed', 'Completed')],
                    default='active', max_length=20, verbose_name='Status',
                )),
                ('start_date', models.DateField(blank=True, null=True, verbose_name='Start Date')),
                ('end_date', models.DateField(blank=True, null=True, verbose_name='End Date')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'verbose_name': 'Project',
                'verbose_name_plural': 'Projects',
                'ordering': ['name'],
            },
        ),
        migrations.AddField(
            model_name='ticket',
            name='project',
            field=models.ForeignKey(
                blank=True, null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name='tickets', to='tickets.project',
                verbose_name='Project',
            ),
        ),
        migrations.CreateModel(
            name='TimeEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name='ID')),
                ('date', models.DateField(default=django.utils.timezone.localdate,
                                          verbose_name='Date')),
                ('start_time', models.TimeField(blank=True, null=True, verbose_name='Start')),
                ('end_time', models.TimeField(blank=True, null=True, verbose_name='End')),
                ('duration_minutes', models.PositiveIntegerField(default=0,
                                                                 verbose_name='Duration (min)')),
                ('description', models.TextField(blank=True, verbose_name='Description')),
                ('activity_type', models.CharField(blank=True, choices=ACTIVITY_CHOICES,
                                                   max_length=30, verbose_name='Activity')),
                ('is_billable', models.BooleanField(default=True, verbose_name='Billable')),
                ('hourly_rate', models.DecimalField(blank=True, decimal_places=2, max_digits=10,
                                                    null=True, verbose_name='Hourly Rate')),
                ('amount', models.DecimalField(blank=True, decimal_places=2, max_digits=10,
                                               null=True, verbose_name='Amount')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('employee', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='time_entries', to='tickets.employee',
                    verbose_name='Employee',
                )),
                ('ticket', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='time_entries', to='tickets.ticket',
                )),
            ],
            options={
                'verbose_name': 'Time Entry',
                'verbose_name_plural': 'Time Entries',
                'ordering': ['-date', '-id'],
            },
        ),
    ]
